"""Spreadsheet-backed task persistence.

Provides:
- A provider contract for task CRUD over monthly worksheet partitions.
- Google Sheets and Excel Online implementations.
- A factory that picks the implementation from a provider tag.
"""

# Public API for the providers service

from .base import SpreadsheetProvider
from .clients import authorize_google, authorize_graph
from .errors import (
    InvalidSheetIdError,
    ProviderConfigurationError,
    ProviderError,
    ProvisioningError,
    RemoteAPIError,
    TaskNotFoundError,
)
from .excel import ExcelProvider
from .factory import EXCEL_ONLINE, GOOGLE_SHEETS, create_provider_for_token, create_spreadsheet_provider
from .google_sheets import GoogleSheetsProvider
from .graph import GraphAPIError, GraphClient
from .models import (
    AddTaskRequest,
    BatchAppendRequest,
    CreateSpreadsheetRequest,
    DeleteTaskRequest,
    SpreadsheetMetadata,
    Task,
    UpdateTaskRequest,
    generate_uid,
    month_sheet_name,
    month_sheet_name_for,
)

__all__ = [
    'SpreadsheetProvider',
    'GoogleSheetsProvider',
    'ExcelProvider',
    'GraphClient',
    'create_spreadsheet_provider',
    'create_provider_for_token',
    'authorize_google',
    'authorize_graph',
    'GOOGLE_SHEETS',
    'EXCEL_ONLINE',
    'Task',
    'SpreadsheetMetadata',
    'CreateSpreadsheetRequest',
    'AddTaskRequest',
    'UpdateTaskRequest',
    'DeleteTaskRequest',
    'BatchAppendRequest',
    'generate_uid',
    'month_sheet_name',
    'month_sheet_name_for',
    'ProviderError',
    'ProviderConfigurationError',
    'InvalidSheetIdError',
    'TaskNotFoundError',
    'RemoteAPIError',
    'ProvisioningError',
    'GraphAPIError',
]
