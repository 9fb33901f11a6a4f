"""Exception types raised by the client."""


class CognifyError(Exception):
    """Base class for client errors."""


class SessionExpiredError(CognifyError):
    """The session cannot be used anymore; the user must log in again."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(message)


class EndpointUnavailableError(CognifyError):
    """Every candidate endpoint for an operation failed."""

    def __init__(self, message: str = "Unable to complete operation"):
        super().__init__(message)


class StorageError(CognifyError):
    """A local key-value store read or write failed."""
