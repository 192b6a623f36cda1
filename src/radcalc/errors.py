"""
Error taxonomy shared by the dose model, the validator and the repositories.

Every error carries a specific, human-readable message that callers may show
verbatim. None of them terminates the process; the worst case is degraded
operation without persistence.
"""


class RadCalcError(Exception):
    """Base class for all radcalc errors."""


class InvalidArgument(RadCalcError, ValueError):
    """A dose model argument is missing, non-finite or not strictly positive."""


class ValidationError(RadCalcError, ValueError):
    """Malformed or out-of-range user input."""


class DuplicateError(RadCalcError):
    """A tissue with the same name (case-insensitive) already exists."""


class NotFoundError(RadCalcError, LookupError):
    """The operation targets an id with no live row."""


class SchemaError(RadCalcError):
    """Schema migration could not complete."""


class StorageUnavailable(RadCalcError):
    """The storage engine failed to open or execute."""


__all__ = [
    "RadCalcError",
    "InvalidArgument",
    "ValidationError",
    "DuplicateError",
    "NotFoundError",
    "SchemaError",
    "StorageUnavailable",
]
