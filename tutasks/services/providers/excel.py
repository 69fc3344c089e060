"""Spreadsheet provider backed by an Excel Online workbook through Microsoft Graph.

Each month partition is a worksheet. Graph has no "does this worksheet exist"
listing check and no append-row call, so:

- provisioning fetches the worksheet by name and treats any failure as
  absence, then creates it and writes the header;
- adds read the last row of the used range and write to an explicit A{n}:E{n}
  address. Two concurrent adds to the same month can read the same last row and
  overwrite each other's row.

Cells edited in Excel come back as serial dates and plain numbers; they are
normalized to canonical strings before leaving this module.
"""

import logging
import re
from typing import Any, Dict, List
from urllib.parse import quote

from tutasks.config.config import (
    DEFAULT_SHEET_TITLE,
    EXCEL_DEFAULT_WORKSHEET,
    EXCEL_FILE_SUFFIX,
    EXCEL_ONLINE,
    TASK_HEADER,
)
from tutasks.config.config_loader import get_config
from tutasks.utils.error_utils import log_error

from .base import SpreadsheetProvider
from .errors import InvalidSheetIdError, ProvisioningError, TaskNotFoundError
from .graph import GraphAPIError, GraphClient
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
from .normalize import normalize_task_row

logger = logging.getLogger(__name__)

_GOOGLE_SHEET_ID_RE = re.compile(r'^[A-Za-z0-9_]+$')
_ADDRESS_ROW_RE = re.compile(r'^\$?[A-Z]+\$?(\d+)')
# Row 1 always holds the header, so data never starts above row 2
FIRST_DATA_ROW = 2


def looks_like_google_sheet_id(sheet_id: str) -> bool:
    """Google spreadsheet ids are long runs of letters, digits and underscores.

    OneDrive item ids contain '!' or '-', so anything longer than 30 characters
    without them is assumed to be a Google id handed to the wrong provider.
    """
    return bool(sheet_id) and len(sheet_id) > 30 and _GOOGLE_SHEET_ID_RE.match(sheet_id) is not None


class ExcelProvider(SpreadsheetProvider):
    """Worksheet-per-month task store inside an Excel Online workbook."""

    def __init__(self, client: GraphClient):
        self.client = client

    # --- paths ---

    @staticmethod
    def _workbook_path(sheet_id: str) -> str:
        return f"/me/drive/items/{quote(sheet_id, safe='')}/workbook"

    def _worksheet_path(self, sheet_id: str, worksheet_name: str) -> str:
        return f"{self._workbook_path(sheet_id)}/worksheets/{quote(worksheet_name, safe='')}"

    def _range_path(self, sheet_id: str, worksheet_name: str, address: str) -> str:
        return f"{self._worksheet_path(sheet_id, worksheet_name)}/range(address='{address}')"

    # --- helpers ---

    @staticmethod
    def _guard_sheet_id(sheet_id: str) -> None:
        if looks_like_google_sheet_id(sheet_id):
            logger.error(f"Rejected id {sheet_id}: it looks like a Google Sheets id, not an Excel file id.")
            raise InvalidSheetIdError(
                sheet_id,
                "Invalid Excel file ID: This appears to be a Google Sheets ID. Please select an Excel file instead.",
            )

    def _ensure_worksheet(self, sheet_id: str, worksheet_name: str) -> bool:
        """Fetches the worksheet by name; on any failure creates it with the header row.

        Returns True if the worksheet was created.
        """
        try:
            self.client.get(self._worksheet_path(sheet_id, worksheet_name))
            return False
        except GraphAPIError as e:
            logger.info(f"Worksheet '{worksheet_name}' not readable in {sheet_id} ({e.status_code}). Creating it.")

        try:
            self.client.post(f"{self._workbook_path(sheet_id)}/worksheets", json={'name': worksheet_name})
        except GraphAPIError as e:
            log_error(f"Could not create worksheet '{worksheet_name}': {e}", sheet_id=sheet_id, provider_type=EXCEL_ONLINE, exc_info=True)
            raise ProvisioningError(f"Failed to create month sheet '{worksheet_name}': {e}", status_code=e.status_code) from e

        try:
            self.client.patch(self._range_path(sheet_id, worksheet_name, 'A1:E1'), json={'values': [TASK_HEADER]})
        except GraphAPIError as e:
            log_error(f"Worksheet '{worksheet_name}' created but header write failed: {e}", sheet_id=sheet_id, provider_type=EXCEL_ONLINE, exc_info=True)
            raise ProvisioningError(f"Failed to write header row to '{worksheet_name}': {e}", status_code=e.status_code) from e
        return True

    @staticmethod
    def _first_row(used_range: Dict[str, Any]) -> int:
        """1-based sheet row of values[0] in a range response.

        A used range starts at the first non-empty cell, not necessarily at row 1.
        """
        if used_range.get('rowIndex') is not None:
            return int(used_range['rowIndex']) + 1
        match = _ADDRESS_ROW_RE.match((used_range.get('address') or '').rsplit('!', 1)[-1])
        return int(match.group(1)) if match else 1

    def _used_range(self, sheet_id: str, worksheet_name: str) -> Dict[str, Any]:
        return self.client.get(f"{self._worksheet_path(sheet_id, worksheet_name)}/usedRange(valuesOnly=true)")

    def _next_row(self, sheet_id: str, worksheet_name: str) -> int:
        """First free row below the used range; never above row 2.

        Raises GraphAPIError if the used range cannot be read.
        """
        used_range = self._used_range(sheet_id, worksheet_name)
        row_count = int(used_range.get('rowCount') or 0)
        if not row_count:
            return FIRST_DATA_ROW
        last_row = self._first_row(used_range) + row_count - 1
        return max(last_row + 1, FIRST_DATA_ROW)

    def _read_tasks(self, used_range: Dict[str, Any]) -> List[Dict[str, str]]:
        rows = self.data_rows(used_range.get('values', []), self._first_row(used_range))
        return [Task(*normalize_task_row(row)).to_dict() for row in rows]

    def _write_rows(self, sheet_id: str, worksheet_name: str, start_row: int, rows: List[List[str]]) -> None:
        end_row = start_row + len(rows) - 1
        address = f"A{start_row}:E{end_row}"
        logger.debug(f"Writing {len(rows)} row(s) to {worksheet_name}!{address} in {sheet_id}")
        self.client.patch(self._range_path(sheet_id, worksheet_name, address), json={'values': rows})

    def _find_task_row(self, sheet_id: str, worksheet_name: str, uid: str) -> int:
        """Returns the 1-based row number holding uid, scanning only column A."""
        column_path = f"{self._range_path(sheet_id, worksheet_name, 'A:A')}/usedRange(valuesOnly=true)"
        try:
            column = self.client.get(column_path)
        except GraphAPIError as e:
            if e.status_code == 404:
                logger.info(f"Worksheet '{worksheet_name}' does not exist in {sheet_id}.")
                raise TaskNotFoundError(uid, worksheet_name) from e
            raise

        first_row = self._first_row(column)
        offset = self.find_uid_row(column.get('values', []), uid, first_row)
        if offset is None:
            logger.info(f"Task {uid} not found in '{worksheet_name}' of {sheet_id}.")
            raise TaskNotFoundError(uid, worksheet_name)
        return first_row + offset

    def _first_worksheet_name(self, sheet_id: str) -> str:
        worksheets = self.client.get(f"{self._workbook_path(sheet_id)}/worksheets").get('value', [])
        if worksheets and worksheets[0].get('name'):
            return worksheets[0]['name']
        return EXCEL_DEFAULT_WORKSHEET

    # --- contract ---

    def list_spreadsheets(self) -> List[SpreadsheetMetadata]:
        response = self.client.get(f"/me/drive/root/search(q='{EXCEL_FILE_SUFFIX}')")
        sheets = []
        for item in response.get('value', []):
            name = item.get('name') or ''
            if 'file' not in item or not name.endswith(EXCEL_FILE_SUFFIX):
                continue
            sheets.append(SpreadsheetMetadata(id=item['id'], name=name[:-len(EXCEL_FILE_SUFFIX)]))
        logger.info(f"Found {len(sheets)} Excel workbook(s).")
        return sheets

    def create_spreadsheet(self, request: CreateSpreadsheetRequest) -> SpreadsheetMetadata:
        title = (request.name or '').strip() or DEFAULT_SHEET_TITLE
        workbook = self.client.post('/me/drive/root/children', json={
            'name': f"{title}{EXCEL_FILE_SUFFIX}",
            'file': {},
            '@microsoft.graph.conflictBehavior': 'rename',
        })

        identifier = build_identifier(get_config().app_version)
        self.client.patch(self._range_path(workbook['id'], EXCEL_DEFAULT_WORKSHEET, 'A1'), json={'values': [[identifier]]})

        logger.info(f"Created Excel workbook '{title}' ({workbook['id']}) tagged '{identifier}'.")
        return SpreadsheetMetadata(id=workbook['id'], name=title)

    def check_identifier(self, sheet_id: str) -> Dict[str, Any]:
        if looks_like_google_sheet_id(sheet_id):
            logger.warning(f"Identifier check on {sheet_id} skipped: it looks like a Google Sheets id.")
            return {'hasIdentifier': False}
        try:
            first_tab = self._first_worksheet_name(sheet_id)
            cell = self.client.get(self._range_path(sheet_id, first_tab, 'A1'))
            return parse_identifier(first_cell(cell.get('values')))
        except Exception as e:
            logger.warning(f"Identifier check failed for {sheet_id}, reporting no identifier: {e}")
            return {'hasIdentifier': False}

    def add_task(self, request: AddTaskRequest) -> Dict[str, Any]:
        self._guard_sheet_id(request.sheet_id)
        uid = request.uid or generate_uid()

        self._ensure_worksheet(request.sheet_id, request.month_sheet_name)
        row = self._next_row(request.sheet_id, request.month_sheet_name)
        task = Task(uid, request.number, request.description, request.date, request.time)
        self._write_rows(request.sheet_id, request.month_sheet_name, row, [task.to_row()])

        logger.info(f"Added task {uid} at row {row} of '{request.month_sheet_name}' in {request.sheet_id}.")
        return {'success': True, 'uid': uid}

    def update_task(self, request: UpdateTaskRequest) -> Dict[str, Any]:
        self._guard_sheet_id(request.sheet_id)
        row = self._find_task_row(request.sheet_id, request.month_sheet_name, request.uid)
        self._write_rows(request.sheet_id, request.month_sheet_name, row, [request.to_task().to_row()])

        logger.info(f"Updated task {request.uid} at row {row} of '{request.month_sheet_name}'.")
        return {'success': True}

    def delete_task(self, request: DeleteTaskRequest) -> Dict[str, Any]:
        self._guard_sheet_id(request.sheet_id)
        row = self._find_task_row(request.sheet_id, request.month_sheet_name, request.uid)

        # Whole-row range delete; rows below move up to close the gap
        row_path = self._range_path(request.sheet_id, request.month_sheet_name, f"{row}:{row}")
        self.client.post(f"{row_path}/delete", json={'shift': 'Up'})

        logger.info(f"Deleted task {request.uid} (row {row}) from '{request.month_sheet_name}'.")
        return {'success': True}

    def batch_append(self, request: BatchAppendRequest) -> Dict[str, Any]:
        self._guard_sheet_id(request.sheet_id)
        if not request.values:
            logger.warning("batch_append called with no rows.")
            return {'success': True}

        self._ensure_worksheet(request.sheet_id, request.month_sheet_name)
        row = self._next_row(request.sheet_id, request.month_sheet_name)
        # Each row must fill A:E exactly or Graph rejects the write
        rows = [Task.from_row(values).to_row() for values in request.values]
        self._write_rows(request.sheet_id, request.month_sheet_name, row, rows)

        logger.info(f"Batch appended {len(request.values)} row(s) from row {row} of '{request.month_sheet_name}'.")
        return {'success': True}

    def get_tasks(self, sheet_id: str, month_sheet_name: str) -> Dict[str, List[Dict[str, str]]]:
        self._guard_sheet_id(sheet_id)
        self._ensure_worksheet(sheet_id, month_sheet_name)

        tasks = self._read_tasks(self._used_range(sheet_id, month_sheet_name))
        logger.info(f"Read {len(tasks)} task(s) from '{month_sheet_name}' in {sheet_id}.")
        return {'tasks': tasks}

    def get_all_tasks(self, sheet_id: str) -> Dict[str, List[Dict[str, str]]]:
        self._guard_sheet_id(sheet_id)

        worksheets = self.client.get(f"{self._workbook_path(sheet_id)}/worksheets").get('value', [])
        month_names = [ws.get('name') for ws in worksheets if is_month_sheet_name(ws.get('name'))]
        if not month_names:
            return {'tasks': []}

        tasks: List[Dict[str, str]] = []
        for name in month_names:
            try:
                used_range = self._used_range(sheet_id, name)
            except GraphAPIError as e:
                logger.warning(f"Skipping worksheet '{name}' in {sheet_id}: {e}")
                continue
            tasks.extend(self._read_tasks(used_range))

        logger.info(f"Read {len(tasks)} task(s) from {len(month_names)} month worksheet(s) in {sheet_id}.")
        return {'tasks': tasks}
