"""Selects the spreadsheet provider for a provider tag and client handle.

This is the only module that branches on the provider tag.
"""

import logging
from typing import Callable, Dict, Optional, Union

import gspread

from tutasks.config.config import EXCEL_ONLINE, GOOGLE_SHEETS
from tutasks.utils.error_utils import log_error

from .base import SpreadsheetProvider
from .clients import authorize_google, authorize_graph
from .errors import ProviderConfigurationError
from .excel import ExcelProvider
from .google_sheets import GoogleSheetsProvider
from .graph import GraphClient

logger = logging.getLogger(__name__)

PROVIDER_TYPES = (GOOGLE_SHEETS, EXCEL_ONLINE)

# Builds the client handle each provider expects from a caller's access token
CLIENT_BUILDERS: Dict[str, Callable[[Optional[str]], Union[gspread.Client, GraphClient]]] = {
    GOOGLE_SHEETS: authorize_google,
    EXCEL_ONLINE: authorize_graph,
}


def _unsupported(provider_type: str) -> ProviderConfigurationError:
    log_error(f"Unsupported provider type requested: {provider_type!r}", provider_type=provider_type)
    return ProviderConfigurationError(f"Unsupported provider type: {provider_type}")


def create_spreadsheet_provider(provider_type: str, client: Union[gspread.Client, GraphClient]) -> SpreadsheetProvider:
    """Returns the adapter for provider_type bound to client.

    Raises:
        ProviderConfigurationError: unknown tag, or a client of the wrong kind for the tag.
    """
    if provider_type == GOOGLE_SHEETS:
        if not isinstance(client, gspread.Client):
            raise ProviderConfigurationError("Google Sheets provider requires an authorized gspread client")
        logger.debug("Creating Google Sheets provider")
        return GoogleSheetsProvider(client)

    if provider_type == EXCEL_ONLINE:
        if not isinstance(client, GraphClient):
            raise ProviderConfigurationError("Excel provider requires a Microsoft Graph client")
        logger.debug("Creating Excel Online provider")
        return ExcelProvider(client)

    raise _unsupported(provider_type)


def create_provider_for_token(provider_type: str, access_token: Optional[str]) -> SpreadsheetProvider:
    """Builds the right client for provider_type from an access token and hands it to create_spreadsheet_provider."""
    builder = CLIENT_BUILDERS.get(provider_type)
    if builder is None:
        raise _unsupported(provider_type)
    return create_spreadsheet_provider(provider_type, builder(access_token))
