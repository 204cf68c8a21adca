"""Exception hierarchy for export and import operations."""

from typing import Optional


class DataTransferError(Exception):
    """Base class for every error raised by datashuttle."""


class ValidationError(DataTransferError, ValueError):
    """Malformed options or malformed imported structure."""


class ConfigurationError(ValidationError):
    """Adapter or option combination that cannot work."""


class WhereClauseError(ValidationError):
    """A WHERE clause passed validation but could not be parsed."""


class SecurityRejection(DataTransferError, ValueError):
    """A WHERE clause was rejected as potentially dangerous."""
    def __init__(self, table: str, clause: str):
        self.table = table
        self.clause = clause
        super().__init__(f'Invalid or potentially dangerous WHERE clause for table {table}: {clause}')


class TransferIOError(DataTransferError, OSError):
    """Filesystem or compression failure."""
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f'{message}: {path}' if path else message)


class RowLevelError(DataTransferError):
    """A statement or batch failed while importing a table."""
    def __init__(self, message: str, table: Optional[str] = None):
        self.table = table
        super().__init__(message)
