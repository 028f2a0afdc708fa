"""Service-layer exceptions mapped to HTTP error envelopes."""
from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions.

    Each subclass carries the HTTP ``status_code`` it maps to and a stable
    ``error_code``. ``detail`` holds internal context that is only exposed
    to clients outside production.
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class ValidationError(ServiceError):
    """Malformed or missing input (400)."""
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(ServiceError):
    """Missing, invalid, expired or revoked credentials (401)."""
    status_code = 401
    error_code = "unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Unknown account, wrong password or deleted account.

    All three cases share one message so callers cannot enumerate accounts.
    """

    def __init__(self, reason: str = "invalid") -> None:
        super().__init__("Invalid credentials")
        # logged server-side only, never added to the response detail
        self.reason = reason


class TokenRevokedError(AuthenticationError):
    """Token is present in the revocation ledger."""

    def __init__(self) -> None:
        super().__init__("Token has been invalidated")


class InvalidSignatureError(AuthenticationError):
    """Token is malformed or its signature does not verify."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


class TokenExpiredError(AuthenticationError):
    """Token signature verifies but its TTL has elapsed."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class AccountNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("User not found")


class ConflictError(ServiceError):
    """Duplicate username or email.

    Reported as 400 so the registration form can treat it like any other
    invalid field.
    """
    status_code = 400
    error_code = "conflict"


class UpstreamError(ServiceError):
    """Durable store failure (500)."""
    status_code = 500
    error_code = "server_error"


class RequestTimeoutError(ServiceError):
    """The durable store did not answer within the bounded wait (408)."""
    status_code = 408
    error_code = "timeout"
