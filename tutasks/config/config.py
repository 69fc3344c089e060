"""Configuration settings for the tutasks spreadsheet persistence layer."""

import os
from dotenv import load_dotenv

load_dotenv()

# --- Application Identity ---
# Written into cell A1 of every spreadsheet this app creates
APP_VERSION = os.getenv('TUTASKS_APP_VERSION', '1.0.0')
IDENTIFIER_PREFIX = 'created:tutasks.com version:'
IDENTIFIER_PATTERN = r'^created:tutasks\.com version:(.+)$'

# Title used when createSpreadsheet receives a blank name
DEFAULT_SHEET_TITLE = 'New Task Sheet'

# --- Month Partition Schema --- #
# Row 1 of every month worksheet. Columns A-E map 1:1 onto Task fields.
TASK_HEADER = ['UID', 'Task Number', 'Description', 'Date', 'Time']
TASK_COLUMN_COUNT = len(TASK_HEADER)
MONTH_SHEET_PATTERN = r'^\d{4}-\d{2}$'

# Grid size requested for a newly provisioned Google Sheets tab
NEW_MONTH_SHEET_ROWS = 1000

# --- Provider Tags ---
# Values callers pass to select a spreadsheet backend
GOOGLE_SHEETS = 'google-sheets'
EXCEL_ONLINE = 'excel-online'

# --- Google Configuration ---
# Google API Scopes needed
SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive.file'
]

# --- Microsoft Graph Configuration ---
GRAPH_API_BASE_URL = os.getenv('GRAPH_API_BASE_URL', 'https://graph.microsoft.com/v1.0')
EXCEL_FILE_SUFFIX = '.xlsx'
# Default worksheet of a workbook created through the Drive API
EXCEL_DEFAULT_WORKSHEET = 'Sheet1'

# Seconds before an outbound HTTP call is abandoned
HTTP_TIMEOUT_SECONDS = 10
