"""Shared API dependencies."""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from codesensei.database import get_db
from codesensei.models.user import User
from codesensei.services import accounts
from codesensei.services.errors import AuthenticationError, ValidationError
from codesensei.services.lifecycle import AuthContext, SessionLifecycleManager

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_request_ip",
    "get_session_manager",
    "get_bearer_token",
    "require_bearer_token",
    "get_session_context",
    "get_auth_context",
    "get_current_user",
]


def get_request_ip(request: Request) -> str | None:
    """Extract best-effort client IP for session metadata."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def get_session_manager(request: Request) -> SessionLifecycleManager:
    """The process-wide lifecycle manager built by the app factory."""
    return request.app.state.session_manager


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


def require_bearer_token(token: str | None = Depends(get_bearer_token)) -> str:
    """Logout endpoints report a missing token as a bad request, not 401."""
    if not token:
        raise ValidationError("No token provided")
    return token


def get_session_context(
    request: Request,
    token: str | None = Depends(get_bearer_token),
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> AuthContext:
    """Authenticate against session state only; the caller checks the account itself."""
    return manager.authenticate(token, get_request_ip(request))


def get_auth_context(
    request: Request,
    token: str | None = Depends(get_bearer_token),
    manager: SessionLifecycleManager = Depends(get_session_manager),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Authenticate the bearer token, require a live account and refresh session activity."""
    return manager.authenticate(token, get_request_ip(request), db=db)


def get_current_user(
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated account; deleted accounts no longer authenticate."""
    user = accounts.get_active_user(db, context.account_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user
