"""Spreadsheet provider backed by Google Sheets through gspread.

Each month partition is a tab. Existence is checked with one metadata call
listing every tab title, values are always written RAW (so dates and times
stay plain strings), and rows are appended with the Sheets API's native
append. The provisioning + append pair is still two separate requests with no
atomicity between them.
"""

import logging
from typing import Any, Dict, List, Optional

import gspread
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from gspread.utils import absolute_range_name

from tutasks.config.config import (
    DEFAULT_SHEET_TITLE,
    GOOGLE_SHEETS,
    NEW_MONTH_SHEET_ROWS,
    TASK_COLUMN_COUNT,
    TASK_HEADER,
)
from tutasks.config.config_loader import get_config
from tutasks.utils.error_utils import log_error

from .base import SpreadsheetProvider
from .errors import InvalidSheetIdError, ProvisioningError, RemoteAPIError, TaskNotFoundError
from .identifier import build_identifier, first_cell, parse_identifier
from .models import (
    AddTaskRequest,
    BatchAppendRequest,
    CreateSpreadsheetRequest,
    DeleteTaskRequest,
    SpreadsheetMetadata,
    Task,
    UpdateTaskRequest,
    generate_uid,
    is_month_sheet_name,
)

logger = logging.getLogger(__name__)

RAW_INPUT = {'valueInputOption': 'RAW'}
RAW_APPEND = {'valueInputOption': 'RAW', 'insertDataOption': 'INSERT_ROWS'}


def _status_code(error: APIError) -> Optional[int]:
    response = getattr(error, 'response', None)
    return getattr(response, 'status_code', None)


def _remote_error(action: str, error: APIError) -> RemoteAPIError:
    status = _status_code(error)
    logger.error(f"Google Sheets API error while trying to {action} (status {status}): {error}")
    return RemoteAPIError(f"Failed to {action}: {error}", status_code=status)


def _is_missing_range(error: APIError) -> bool:
    """A 400 'Unable to parse range' means the tab named in the range does not exist."""
    return _status_code(error) == 400 and 'Unable to parse range' in str(error)


class GoogleSheetsProvider(SpreadsheetProvider):
    """Tab-per-month task store inside a Google spreadsheet."""

    def __init__(self, client: gspread.Client):
        self.client = client

    # --- helpers ---

    def _open(self, sheet_id: str) -> gspread.Spreadsheet:
        try:
            return self.client.open_by_key(sheet_id)
        except SpreadsheetNotFound as e:
            logger.error(f"Google spreadsheet '{sheet_id}' not found or not shared with this account.")
            raise InvalidSheetIdError(sheet_id, f"Spreadsheet not found: {sheet_id}") from e
        except APIError as e:
            raise _remote_error(f"open spreadsheet {sheet_id}", e) from e

    def _worksheet_titles(self, spreadsheet: gspread.Spreadsheet) -> List[str]:
        try:
            return [ws.title for ws in spreadsheet.worksheets()]
        except APIError as e:
            raise _remote_error(f"list tabs of {spreadsheet.id}", e) from e

    def _ensure_month_sheet(self, spreadsheet: gspread.Spreadsheet, month_sheet_name: str) -> bool:
        """Adds the month tab with its header row unless it is already listed.

        Returns True if the tab was created.
        """
        if month_sheet_name in self._worksheet_titles(spreadsheet):
            return False

        logger.info(f"Month tab '{month_sheet_name}' missing in {spreadsheet.id}. Provisioning it.")
        try:
            spreadsheet.add_worksheet(title=month_sheet_name, rows=NEW_MONTH_SHEET_ROWS, cols=TASK_COLUMN_COUNT)
        except APIError as e:
            log_error(f"Could not add tab '{month_sheet_name}': {e}", sheet_id=spreadsheet.id, provider_type=GOOGLE_SHEETS, exc_info=True)
            raise ProvisioningError(f"Failed to create month sheet '{month_sheet_name}': {e}", status_code=_status_code(e)) from e

        header_range = absolute_range_name(month_sheet_name, 'A1:E1')
        try:
            spreadsheet.values_update(header_range, params=RAW_INPUT, body={'values': [TASK_HEADER]})
        except APIError as e:
            # The tab now exists without a header; the next write will not retry provisioning.
            log_error(f"Tab '{month_sheet_name}' created but header write failed: {e}", sheet_id=spreadsheet.id, provider_type=GOOGLE_SHEETS, exc_info=True)
            raise ProvisioningError(f"Failed to write header row to '{month_sheet_name}': {e}", status_code=_status_code(e)) from e
        return True

    def _append_rows(self, spreadsheet: gspread.Spreadsheet, month_sheet_name: str, rows: List[List[str]]) -> None:
        append_range = absolute_range_name(month_sheet_name, 'A:E')
        logger.debug(f"Appending {len(rows)} row(s) to {append_range} in {spreadsheet.id}")
        try:
            spreadsheet.values_append(append_range, params=RAW_APPEND, body={'values': rows})
        except APIError as e:
            raise _remote_error(f"append rows to '{month_sheet_name}'", e) from e

    def _find_task_row(self, spreadsheet: gspread.Spreadsheet, month_sheet_name: str, uid: str) -> int:
        """Returns the 1-based row number holding uid, scanning only column A."""
        column_range = absolute_range_name(month_sheet_name, 'A:A')
        try:
            response = spreadsheet.values_get(column_range)
        except APIError as e:
            if _is_missing_range(e):
                logger.info(f"Month tab '{month_sheet_name}' does not exist in {spreadsheet.id}.")
                raise TaskNotFoundError(uid, month_sheet_name) from e
            raise _remote_error(f"read uids from '{month_sheet_name}'", e) from e

        offset = self.find_uid_row(response.get('values', []), uid)
        if offset is None:
            logger.info(f"Task {uid} not found in '{month_sheet_name}' of {spreadsheet.id}.")
            raise TaskNotFoundError(uid, month_sheet_name)
        return offset + 1

    @classmethod
    def _rows_to_tasks(cls, rows: List[List[Any]]) -> List[Dict[str, str]]:
        # A:E reads always start at row 1
        return [Task.from_row(row).to_dict() for row in cls.data_rows(rows)]

    # --- contract ---

    def list_spreadsheets(self) -> List[SpreadsheetMetadata]:
        try:
            files = self.client.list_spreadsheet_files()
        except APIError as e:
            raise _remote_error("list spreadsheets", e) from e

        sheets = [SpreadsheetMetadata(id=f['id'], name=f.get('name', '')) for f in files if f.get('id')]
        logger.info(f"Found {len(sheets)} Google spreadsheet(s).")
        return sheets

    def create_spreadsheet(self, request: CreateSpreadsheetRequest) -> SpreadsheetMetadata:
        title = (request.name or '').strip() or DEFAULT_SHEET_TITLE
        try:
            spreadsheet = self.client.create(title)
        except APIError as e:
            raise _remote_error(f"create spreadsheet '{title}'", e) from e

        first_tab = spreadsheet.sheet1.title
        identifier = build_identifier(get_config().app_version)
        try:
            spreadsheet.values_update(absolute_range_name(first_tab, 'A1'), params=RAW_INPUT, body={'values': [[identifier]]})
        except APIError as e:
            raise _remote_error(f"write identifier to {spreadsheet.id}", e) from e

        logger.info(f"Created Google spreadsheet '{title}' ({spreadsheet.id}) tagged '{identifier}'.")
        return SpreadsheetMetadata(id=spreadsheet.id, name=spreadsheet.title or title)

    def check_identifier(self, sheet_id: str) -> Dict[str, Any]:
        try:
            spreadsheet = self.client.open_by_key(sheet_id)
            first_tab = spreadsheet.sheet1.title
            response = spreadsheet.values_get(absolute_range_name(first_tab, 'A1'))
            return parse_identifier(first_cell(response.get('values')))
        except Exception as e:
            logger.warning(f"Identifier check failed for {sheet_id}, reporting no identifier: {e}")
            return {'hasIdentifier': False}

    def add_task(self, request: AddTaskRequest) -> Dict[str, Any]:
        uid = request.uid or generate_uid()
        spreadsheet = self._open(request.sheet_id)
        self._ensure_month_sheet(spreadsheet, request.month_sheet_name)

        task = Task(uid, request.number, request.description, request.date, request.time)
        self._append_rows(spreadsheet, request.month_sheet_name, [task.to_row()])
        logger.info(f"Added task {uid} to '{request.month_sheet_name}' in {request.sheet_id}.")
        return {'success': True, 'uid': uid}

    def update_task(self, request: UpdateTaskRequest) -> Dict[str, Any]:
        spreadsheet = self._open(request.sheet_id)
        row = self._find_task_row(spreadsheet, request.month_sheet_name, request.uid)

        row_range = absolute_range_name(request.month_sheet_name, f"A{row}:E{row}")
        logger.debug(f"Overwriting {row_range} in {request.sheet_id}")
        try:
            spreadsheet.values_update(row_range, params=RAW_INPUT, body={'values': [request.to_task().to_row()]})
        except APIError as e:
            raise _remote_error(f"update task {request.uid}", e) from e

        logger.info(f"Updated task {request.uid} at row {row} of '{request.month_sheet_name}'.")
        return {'success': True}

    def delete_task(self, request: DeleteTaskRequest) -> Dict[str, Any]:
        spreadsheet = self._open(request.sheet_id)
        row = self._find_task_row(spreadsheet, request.month_sheet_name, request.uid)

        # Row deletion is addressed by the tab's numeric sheetId, not its title
        try:
            worksheet = spreadsheet.worksheet(request.month_sheet_name)
        except WorksheetNotFound as e:
            raise TaskNotFoundError(request.uid, request.month_sheet_name) from e
        except APIError as e:
            raise _remote_error(f"look up tab '{request.month_sheet_name}'", e) from e

        try:
            worksheet.delete_rows(row)
        except APIError as e:
            raise _remote_error(f"delete task {request.uid}", e) from e

        logger.info(f"Deleted task {request.uid} (row {row}, sheetId {worksheet.id}) from '{request.month_sheet_name}'.")
        return {'success': True}

    def batch_append(self, request: BatchAppendRequest) -> Dict[str, Any]:
        if not request.values:
            logger.warning("batch_append called with no rows.")
            return {'success': True}
        spreadsheet = self._open(request.sheet_id)
        self._ensure_month_sheet(spreadsheet, request.month_sheet_name)
        self._append_rows(spreadsheet, request.month_sheet_name, [Task.from_row(row).to_row() for row in request.values])
        logger.info(f"Batch appended {len(request.values)} row(s) to '{request.month_sheet_name}' in {request.sheet_id}.")
        return {'success': True}

    def get_tasks(self, sheet_id: str, month_sheet_name: str) -> Dict[str, List[Dict[str, str]]]:
        spreadsheet = self._open(sheet_id)
        self._ensure_month_sheet(spreadsheet, month_sheet_name)

        try:
            response = spreadsheet.values_get(absolute_range_name(month_sheet_name, 'A:E'))
        except APIError as e:
            raise _remote_error(f"read tasks from '{month_sheet_name}'", e) from e

        tasks = self._rows_to_tasks(response.get('values', []))
        logger.info(f"Read {len(tasks)} task(s) from '{month_sheet_name}' in {sheet_id}.")
        return {'tasks': tasks}

    def get_all_tasks(self, sheet_id: str) -> Dict[str, List[Dict[str, str]]]:
        spreadsheet = self._open(sheet_id)
        month_titles = [title for title in self._worksheet_titles(spreadsheet) if is_month_sheet_name(title)]
        if not month_titles:
            return {'tasks': []}

        ranges = [absolute_range_name(title, 'A:E') for title in month_titles]
        try:
            response = spreadsheet.values_batch_get(ranges)
            per_sheet_rows = [value_range.get('values', []) for value_range in response.get('valueRanges', [])]
        except APIError as e:
            logger.warning(f"Batch read of {len(ranges)} month tab(s) failed for {sheet_id}: {e}. Reading tab by tab.")
            per_sheet_rows = []
            for title, range_name in zip(month_titles, ranges):
                try:
                    per_sheet_rows.append(spreadsheet.values_get(range_name).get('values', []))
                except APIError as tab_error:
                    logger.warning(f"Skipping month tab '{title}' in {sheet_id}: {tab_error}")

        tasks: List[Dict[str, str]] = []
        for rows in per_sheet_rows:
            tasks.extend(self._rows_to_tasks(rows))
        logger.info(f"Read {len(tasks)} task(s) from {len(month_titles)} month tab(s) in {sheet_id}.")
        return {'tasks': tasks}
