"""The provenance tag written to cell A1 of spreadsheets created by tutasks."""

import re
from typing import Any, Dict, Optional

from tutasks.config.config import IDENTIFIER_PATTERN, IDENTIFIER_PREFIX

_IDENTIFIER_RE = re.compile(IDENTIFIER_PATTERN)


def build_identifier(version: str) -> str:
    return f"{IDENTIFIER_PREFIX}{version}"


def parse_identifier(value: Any) -> Dict[str, Any]:
    """Matches a cell value against the identifier tag.

    Returns {'hasIdentifier': True, 'version': <captured version>} on a match,
    otherwise {'hasIdentifier': False}. Non-string cell values never match.
    """
    if not isinstance(value, str):
        return {'hasIdentifier': False}
    match = _IDENTIFIER_RE.match(value)
    if match:
        return {'hasIdentifier': True, 'version': match.group(1)}
    return {'hasIdentifier': False}


def first_cell(values: Optional[list]) -> Any:
    """Returns values[0][0] of a 2-D cell range, or '' if the range is empty."""
    if not values or not values[0]:
        return ''
    return values[0][0]
