# reconcile/utils/errors.py

from typing import Any, Optional


class ReconcileError(Exception):
    """Base class for everything the comparison engine raises."""


class ConfigError(ReconcileError):
    pass


class SpreadsheetReadError(ReconcileError):
    pass


class InputAccessError(ReconcileError):
    """An expected column is absent or unusable on one row."""

    def __init__(self, message: str, field: Optional[str] = None, row_number: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.row_number = row_number


class MalformedDateError(InputAccessError):
    def __init__(self, value: Any, field: Optional[str] = None, row_number: Optional[int] = None):
        super().__init__(f"Unusable date value {value!r}", field=field, row_number=row_number)
        self.value = value


class ComparisonFailure(ReconcileError):
    """The matching/classification pass failed as a whole; no partial results."""
