"""Error taxonomy shared by services and routes."""
from typing import Optional


class AppError(Exception):
    """Base error; status_code is what the HTTP layer answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = 400


class AuthenticationError(AppError):
    """Bad session or bad webhook secret."""

    status_code = 401


class PermissionDeniedError(AppError):
    """Caller is authenticated but lacks the role for an admin surface."""

    status_code = 403


class NotFoundError(AppError):
    """Requested entity is missing."""

    status_code = 404


class AuthorizationError(NotFoundError):
    """Entity belongs to another user; reported exactly like a missing one."""


class IntegrationFailure(AppError):
    """A provider call failed, timed out or answered with an unusable body."""

    status_code = 500

    def __init__(
            self,
            provider: str,
            operation: str,
            message: str,
            provider_status: Optional[int] = None
    ):
        super().__init__(f"{provider} {operation} failed: {message}")
        self.provider = provider
        self.operation = operation
        self.reason = message
        self.provider_status = provider_status


class ProviderAuthenticationError(IntegrationFailure):
    """Provider rejected the integration credentials."""

    def __init__(self, provider: str, message: str, provider_status: Optional[int] = None):
        super().__init__(provider, "authenticate", message, provider_status)


class UnsupportedProviderError(ValidationError):
    """No delivery client is registered under this provider name."""

    def __init__(self, provider: str):
        super().__init__(f"Unsupported delivery provider: {provider}")
        self.provider = provider


class DeliveryNotCancellableError(AppError):
    """Delivery already reached a terminal status."""

    status_code = 409

    def __init__(self, provider: str, delivery_id: str, status: str):
        super().__init__(
            f"Delivery {delivery_id} cannot be canceled: already {status}"
        )
        self.provider = provider
        self.delivery_id = delivery_id
        self.status = status
