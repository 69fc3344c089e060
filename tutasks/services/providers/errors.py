"""Exceptions raised by spreadsheet providers."""

from typing import Optional


class ProviderError(Exception):
    """Base exception for spreadsheet provider errors."""
    pass


class ProviderConfigurationError(ProviderError):
    """Unknown provider tag, a client that does not match its tag, or missing credentials."""
    pass


class InvalidSheetIdError(ProviderError):
    """The spreadsheet id is malformed or belongs to the other provider."""

    def __init__(self, sheet_id: str, message: str):
        super().__init__(message)
        self.sheet_id = sheet_id


class TaskNotFoundError(ProviderError):
    """No row in the month partition carries the requested uid."""

    def __init__(self, uid: str, month_sheet_name: str):
        super().__init__(f"Task not found: uid '{uid}' is not in sheet '{month_sheet_name}'")
        self.uid = uid
        self.month_sheet_name = month_sheet_name


class RemoteAPIError(ProviderError):
    """The backing spreadsheet service rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProvisioningError(RemoteAPIError):
    """Creating a month partition or writing its header row failed partway."""
    pass
