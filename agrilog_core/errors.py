class AgrilogError(Exception):
    """Base error for Agrilog."""


class ValidationError(AgrilogError):
    """Input validation failure."""


class EmptySelectionError(AgrilogError):
    """No records matched the operation's selection."""


class StoreError(AgrilogError):
    """The audit record store failed to read or write."""


class ArchiveError(AgrilogError):
    """The archive container could not be written."""
