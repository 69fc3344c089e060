"""Task record model, request objects and month-partition naming."""

import re
import secrets
import string
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import List, Optional, Dict, Any, Sequence

from tutasks.config.config import MONTH_SHEET_PATTERN, TASK_COLUMN_COUNT

_MONTH_SHEET_RE = re.compile(MONTH_SHEET_PATTERN)
_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_UID_RANDOM_LENGTH = 28


@dataclass
class Task:
    uid: str
    number: str
    description: str
    date: str
    time: str

    def to_row(self) -> List[str]:
        """Returns the A-E cell values of this task's row."""
        return [self.uid, self.number, self.description, self.date, self.time]

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> 'Task':
        """Builds a Task from a row of cell values. Missing trailing cells become empty strings."""
        cells = [str(cell) if cell is not None else '' for cell in list(row)[:TASK_COLUMN_COUNT]]
        cells += [''] * (TASK_COLUMN_COUNT - len(cells))
        return cls(*cells)


@dataclass
class SpreadsheetMetadata:
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class CreateSpreadsheetRequest:
    name: str


@dataclass
class AddTaskRequest:
    sheet_id: str
    month_sheet_name: str
    number: str
    description: str
    date: str
    time: str
    uid: Optional[str] = None


@dataclass
class UpdateTaskRequest:
    sheet_id: str
    month_sheet_name: str
    uid: str
    number: str
    description: str
    date: str
    time: str

    def to_task(self) -> Task:
        return Task(self.uid, self.number, self.description, self.date, self.time)


@dataclass
class DeleteTaskRequest:
    sheet_id: str
    month_sheet_name: str
    uid: str


@dataclass
class BatchAppendRequest:
    sheet_id: str
    month_sheet_name: str
    values: List[List[str]]


def is_month_sheet_name(name: Optional[str]) -> bool:
    """True if the worksheet name is a YYYY-MM month partition."""
    return bool(name) and _MONTH_SHEET_RE.match(name) is not None


def month_sheet_name(year: int, month: int) -> str:
    """Partition name for a 1-based month, e.g. (2024, 1) -> '2024-01'."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return f"{year:04d}-{month:02d}"


def month_sheet_name_for(date_str: str) -> str:
    """Partition name for a YYYY-MM-DD task date."""
    parsed = datetime.strptime(date_str, '%Y-%m-%d')
    return month_sheet_name(parsed.year, parsed.month)


def _to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def generate_uid() -> str:
    """Random base-36 fragment followed by the base-36 millisecond clock."""
    random_part = ''.join(secrets.choice(_BASE36_ALPHABET) for _ in range(_UID_RANDOM_LENGTH))
    return random_part + _to_base36(time.time_ns() // 1_000_000)
