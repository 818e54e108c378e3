class Error(Exception):
    """Base exception for ledger processor errors."""

    pass


class ConfigurationError(Error):
    """Raised when configuration is invalid."""

    pass


class LedgerError(Error):
    """Base exception for failures raised while applying an event."""

    pass


class EventValidationError(LedgerError):
    """Raised when an inbound message or payload fails schema validation."""

    pass


class PreconditionError(LedgerError):
    """Raised when a row or field the transition depends on does not exist."""

    pass


class DuplicateRecordError(LedgerError):
    """Raised when a create collides with an existing unique key."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class StoreUnavailableError(LedgerError):
    """Raised when the ledger store cannot complete an operation."""

    pass


class CollaboratorError(Error):
    """Raised when an external collaborator call fails."""

    pass


class SubmissionLookupError(CollaboratorError):
    """Raised when the submission API returns an error or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
