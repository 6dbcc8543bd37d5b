"""Custom exceptions for the client session layer."""


class SessionError(Exception):
    """Base class for failures surfaced by the session layer."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class CredentialRejectedError(SessionError):
    """Raised when the server answers a credential exchange with a non-2xx status."""

    default_message = "Authentication failed"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientNetworkError(SessionError):
    """Raised when the server could not be reached or did not answer in time."""

    default_message = "Network error. Please check your connection and try again."


class MalformedResponseError(SessionError):
    """Raised when a successful response does not carry the expected fields."""

    default_message = "Unexpected response from server"


class UnauthorizedError(SessionError):
    """Raised when an authenticated call is answered with 401."""

    default_message = "Authentication required"
