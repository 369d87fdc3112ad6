class LibraryError(Exception):
    """Base class for every domain error raised by the services"""


class ValidationError(LibraryError):
    """A single input (row, line item, request field) is invalid"""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class NotFoundError(LibraryError):
    pass


class ConfigurationError(LibraryError):
    """Fee settings are missing or malformed; the operation must stop"""


class LifecycleError(LibraryError):
    """A transaction is in a state that forbids the requested change"""


class StockAdjustmentError(ValidationError):
    """A stock adjustment submission was rejected as a whole"""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []


class ConcurrentUpdateError(LibraryError):
    """Another writer changed the same row between our read and our write"""


class PaymentError(LibraryError):
    pass


class ImportFileError(LibraryError):
    """The import file is missing, of an unsupported type or unreadable"""
