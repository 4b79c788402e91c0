class CaseAssistError(Exception):
    """Base class for suggestion retrieval failures."""


class InvalidRequestError(CaseAssistError):
    """Raised when a request violates its preconditions; nothing is sent."""


class RemoteUnavailableError(CaseAssistError):
    """Raised on transport failures, timeouts included."""


class RemoteError(CaseAssistError):
    """Raised when the endpoint answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidResponseError(CaseAssistError):
    """Raised when the endpoint payload cannot be decoded."""


__all__ = [
    "CaseAssistError",
    "InvalidRequestError",
    "RemoteUnavailableError",
    "RemoteError",
    "InvalidResponseError",
]
