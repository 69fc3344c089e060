"""The operation set every spreadsheet backend implements.

A provider wraps one authenticated client handle and talks to exactly one
spreadsheet service. Every operation is a short, non-transactional sequence of
remote calls: nothing is retried and nothing is rolled back. Two concurrent
writers to the same month partition can interleave, and a delete can shift
rows under an in-flight update, so callers should re-read with
get_all_tasks() after each mutation instead of trusting local state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    AddTaskRequest,
    BatchAppendRequest,
    CreateSpreadsheetRequest,
    DeleteTaskRequest,
    SpreadsheetMetadata,
    UpdateTaskRequest,
)
from .normalize import cell_to_string

logger = logging.getLogger(__name__)


class SpreadsheetProvider(ABC):
    """Task CRUD over a spreadsheet with one YYYY-MM worksheet per month."""

    @abstractmethod
    def list_spreadsheets(self) -> List[SpreadsheetMetadata]:
        """Candidate documents the user can pick as a task store."""

    @abstractmethod
    def create_spreadsheet(self, request: CreateSpreadsheetRequest) -> SpreadsheetMetadata:
        """Creates a document and stamps the identifier tag into A1 of its first tab."""

    @abstractmethod
    def check_identifier(self, sheet_id: str) -> Dict[str, Any]:
        """Reports whether A1 of the first tab holds the identifier tag. Never raises."""

    @abstractmethod
    def add_task(self, request: AddTaskRequest) -> Dict[str, Any]:
        """Appends one task, provisioning the month partition if needed."""

    @abstractmethod
    def update_task(self, request: UpdateTaskRequest) -> Dict[str, Any]:
        """Overwrites the row carrying request.uid. Raises TaskNotFoundError if absent."""

    @abstractmethod
    def delete_task(self, request: DeleteTaskRequest) -> Dict[str, Any]:
        """Removes the row carrying request.uid and shifts later rows up."""

    @abstractmethod
    def batch_append(self, request: BatchAppendRequest) -> Dict[str, Any]:
        """Appends many rows in one write, provisioning the month partition if needed."""

    @abstractmethod
    def get_tasks(self, sheet_id: str, month_sheet_name: str) -> Dict[str, List[Dict[str, str]]]:
        """Tasks of one month partition, provisioning the partition if needed."""

    @abstractmethod
    def get_all_tasks(self, sheet_id: str) -> Dict[str, List[Dict[str, str]]]:
        """Every task from every month partition, in worksheet order."""

    @staticmethod
    def find_uid_row(column_values: Optional[Sequence[Sequence[Any]]], uid: str, first_row: int = 1) -> Optional[int]:
        """Linear scan of a fetched column A for uid.

        first_row is the 1-based sheet row of column_values[0]. Returns the
        0-based offset of the matching row within column_values, or None.
        Sheet row 1 is the header and is never matched.
        """
        if not column_values:
            return None
        for offset, row in enumerate(column_values):
            if first_row + offset == 1:
                continue
            if row and cell_to_string(row[0]) == uid:
                return offset
        return None

    @staticmethod
    def is_blank_row(row: Sequence[Any]) -> bool:
        return all(cell_to_string(cell) == '' for cell in row)

    @classmethod
    def data_rows(cls, rows: Sequence[Sequence[Any]], first_row: int = 1) -> List[Sequence[Any]]:
        """Non-blank rows of a fetched range, minus sheet row 1 (the header)."""
        return [row for offset, row in enumerate(rows)
                if first_row + offset != 1 and not cls.is_blank_row(row)]
