"""
Error types raised by the stores.

Absence (record not found) is never an exception: stores return None/False.
"""

from typing import Optional


class FundraisingError(Exception):
    """Base for all store errors"""
    pass


class InvalidRequestError(FundraisingError):
    """Raised when a record or id is malformed"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ReferenceNotFoundError(FundraisingError):
    """Raised when a referenced Recipient or Campaign does not exist"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DependentRecordsError(FundraisingError):
    """Raised when a delete is blocked by records that reference the target"""

    def __init__(self, message: str, dependent: Optional[str] = None):
        super().__init__(message)
        self.dependent = dependent


class StoreError(FundraisingError):
    """Raised when the document store fails; the driver error is chained, not exposed"""
    pass
