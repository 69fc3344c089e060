"""Converts Excel Online cell values into the canonical string forms of a Task.

Excel hands back dates and numeric-looking times as numbers once its own
formatting engine has touched a cell. Dates are serial day counts and times
are plain decimals (hours worked, possibly above 24). Google Sheets values are
written RAW and read back as strings, so only the Excel adapter uses this.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, List, Sequence

from tutasks.config.config import TASK_COLUMN_COUNT

logger = logging.getLogger(__name__)

# Excel counts from 1900-01-01 as day 1 but also treats 1900 as a leap year,
# so modern serials line up with an epoch of 1899-12-30.
EXCEL_EPOCH = datetime(1899, 12, 30)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value: float) -> str:
    """Decimal text for a cell number; integral values drop the trailing '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def cell_to_string(value: Any) -> str:
    """Generic cell -> text conversion used for uid, number and description."""
    if value is None or value == '':
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if _is_number(value):
        return format_number(value)
    return str(value)


def excel_date_to_string(value: Any) -> str:
    """Converts an Excel date serial to YYYY-MM-DD. Strings pass through unchanged."""
    if isinstance(value, str):
        return value
    if _is_number(value) and value > 1:
        try:
            converted = EXCEL_EPOCH + timedelta(days=value)
        except OverflowError:
            logger.warning(f"Excel date serial {value} is out of range; keeping it as text.")
            return format_number(value)
        return converted.strftime('%Y-%m-%d')
    return cell_to_string(value)


def excel_time_to_string(value: Any) -> str:
    """Converts an Excel time value (decimal hours) to its text form. Strings pass through unchanged."""
    if isinstance(value, str):
        return value
    return cell_to_string(value)


def normalize_task_row(row: Sequence[Any]) -> List[str]:
    """Maps a raw Excel row onto the five canonical Task cell strings."""
    cells = list(row) + [''] * (TASK_COLUMN_COUNT - len(row))
    return [
        cell_to_string(cells[0]),
        cell_to_string(cells[1]),
        cell_to_string(cells[2]),
        excel_date_to_string(cells[3]),
        excel_time_to_string(cells[4]),
    ]
