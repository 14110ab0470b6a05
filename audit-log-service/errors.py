# errors.py


class AuditLogError(Exception):
    """Base class for audit log service errors."""


class ValidationError(AuditLogError):
    """A required field is missing or malformed. The message is safe to return to the caller."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class StoreUnavailableError(AuditLogError):
    """The store could not be reached or a query failed."""


class SchemaMismatchError(AuditLogError):
    """The store structure does not match what the service expects and could not be migrated."""


class RetentionSweepError(AuditLogError):
    """A retention sweep pass failed."""
