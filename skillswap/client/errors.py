from typing import Any, Optional


class ClientError(Exception):
    """Base class for every failure reported by the client package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientValidationError(ClientError):
    """Rejected locally, before any network call."""


class ApiError(ClientError):
    def __init__(self, message: str, status_code: int, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(ApiError):
    def __init__(self, message: str, status_code: int = 401, detail: Any = None):
        super().__init__(message, status_code, detail)


class AuthorizationError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class RequestRejectedError(ApiError):
    """The server refused the operation; current_status is set for lifecycle refusals."""

    def __init__(self, message: str, status_code: int, detail: Any = None, current_status: Optional[str] = None):
        super().__init__(message, status_code, detail)
        self.current_status = current_status


class TransportError(ClientError):
    """The request never got an application-level answer."""


class NotConnectedError(TransportError):
    pass


class AckTimeoutError(TransportError):
    pass


class MessageRejectedError(ClientError):
    """The messaging server answered a send with an error event."""
