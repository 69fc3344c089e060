import logging
from typing import Optional

logger = logging.getLogger(__name__)


def log_error(message: str, sheet_id: Optional[str] = None, provider_type: Optional[str] = None, exc_info=False):
    """Logs an error message, optionally including spreadsheet/provider info and exception details."""
    log_message = f"ERROR: {message}"
    if provider_type:
        log_message += f" | Provider: {provider_type}"
    if sheet_id:
        log_message += f" | Sheet ID: {sheet_id}"

    logger.error(log_message, exc_info=exc_info)
