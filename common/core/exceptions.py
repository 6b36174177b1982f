from typing import Optional


class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class NotificationParseError(AppException):
    """Inbound gateway notification body could not be parsed."""

    pass


class GatewayError(AppException):
    """Payment gateway call failed, was rejected, or timed out."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status = status


class PersistenceError(AppException):
    """Store operation failed after an inline retry."""

    pass


class SubscriptionNotFoundError(NotFoundError):
    """Subscription does not exist."""

    pass


class SubscriptionNotActiveError(ValidationError):
    """Subscription exists but is not in the active state."""

    pass
