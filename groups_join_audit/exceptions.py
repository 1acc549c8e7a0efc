"""Errors shared across groups_join_audit modules."""


class AuditError(Exception):
    """Base class for errors that abort the audit.

    The command line entry point catches these, reports the message and
    exits with a non-zero status.
    """
    pass


class ConfigError(AuditError):
    """Raised when required configuration is missing or malformed."""
    pass
