"""Authentication and session API endpoints."""
from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.orm import Session

from codesensei.api.deps import (
    get_auth_context,
    get_current_user,
    get_db,
    get_request_ip,
    get_session_context,
    get_session_manager,
    require_bearer_token,
)
from codesensei.models.user import User
from codesensei.schemas.auth import (
    AccountDeletedData,
    AuthData,
    ChangePasswordRequest,
    LogoutHistoryData,
    LogoutHistoryEntryResponse,
    LogoutRequest,
    SessionResponse,
    SessionsData,
    SessionsTerminatedData,
    UserLogin,
    UserRegister,
    UserResponse,
)
from codesensei.schemas.common import Envelope
from codesensei.services.lifecycle import AuthContext, SessionLifecycleManager

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=Envelope[AuthData],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(
    user_data: UserRegister,
    request: Request,
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Register a new user and start their first session."""
    token, user = manager.register(
        db,
        username=user_data.username,
        email=user_data.email,
        password=user_data.password,
        name=user_data.name,
        ip_address=get_request_ip(request),
    )
    return Envelope(data=AuthData(token=token, user=UserResponse.model_validate(user)))


@router.post("/login", response_model=Envelope[AuthData], response_model_exclude_none=True)
def login(
    user_data: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Login with username or email."""
    token, user = manager.login(
        db,
        user_data.username,
        user_data.password,
        ip_address=get_request_ip(request),
    )
    return Envelope(data=AuthData(token=token, user=UserResponse.model_validate(user)))


@router.post("/logout", response_model=Envelope, response_model_exclude_none=True)
def logout(
    payload: LogoutRequest | None = Body(default=None),
    token: str = Depends(require_bearer_token),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Revoke the presented token. Logging out twice is harmless."""
    manager.logout(token, reason=payload.reason if payload else None)
    return Envelope(message="Logged out successfully")


@router.post("/logout-all", response_model=Envelope[SessionsTerminatedData], response_model_exclude_none=True)
def logout_all(
    request: Request,
    token: str = Depends(require_bearer_token),
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Revoke every session of the caller, including this one."""
    context = manager.authenticate(token, get_request_ip(request), db=db)
    terminated = manager.logout_all(context)
    return Envelope(
        message="Successfully logged out from all devices",
        data=SessionsTerminatedData(sessions_terminated=terminated),
    )


@router.post("/logout-others", response_model=Envelope[SessionsTerminatedData], response_model_exclude_none=True)
def logout_others(
    request: Request,
    token: str = Depends(require_bearer_token),
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Revoke every session of the caller except this one."""
    context = manager.authenticate(token, get_request_ip(request), db=db)
    terminated = manager.logout_others(context)
    return Envelope(
        message="Successfully logged out from other devices",
        data=SessionsTerminatedData(sessions_terminated=terminated),
    )


@router.get("/sessions", response_model=Envelope[SessionsData], response_model_exclude_none=True)
def get_sessions(
    context: AuthContext = Depends(get_auth_context),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """List the caller's active sessions."""
    sessions = [
        SessionResponse(
            created_at=record.created_at,
            expires_at=record.expires_at,
            device=record.device,
            last_active=record.last_active,
            ip_address=record.ip_address,
            is_current=record.token == context.token,
        )
        for record in manager.list_sessions(context.account_id)
    ]
    return Envelope(data=SessionsData(sessions=sessions))


@router.get("/logout-history", response_model=Envelope[LogoutHistoryData], response_model_exclude_none=True)
def get_logout_history(
    context: AuthContext = Depends(get_auth_context),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """List the caller's past session terminations, oldest first."""
    history = [
        LogoutHistoryEntryResponse.model_validate(entry)
        for entry in manager.list_logout_history(context.account_id)
    ]
    return Envelope(data=LogoutHistoryData(history=history))


@router.get("/profile", response_model=Envelope[UserResponse], response_model_exclude_none=True)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user's public profile."""
    return Envelope(data=UserResponse.model_validate(current_user))


@router.post("/profile/change-password", response_model=Envelope, response_model_exclude_none=True)
def change_password(
    payload: ChangePasswordRequest,
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Change password and end the current session."""
    manager.change_password(
        db,
        context,
        current_password=payload.current_password,
        new_password=payload.new_password,
        confirm_password=payload.confirm_password,
    )
    return Envelope(message="Password changed successfully. Please log in again with your new password.")


@router.delete("/account", response_model=Envelope[AccountDeletedData], response_model_exclude_none=True)
def delete_account(
    context: AuthContext = Depends(get_session_context),
    db: Session = Depends(get_db),
    manager: SessionLifecycleManager = Depends(get_session_manager),
):
    """Delete the caller's account, reviews and sessions."""
    result = manager.delete_account(db, context.account_id)
    return Envelope(
        message="Account successfully deleted",
        data=AccountDeletedData(
            reviews_deleted=result.reviews_deleted,
            sessions_terminated=result.sessions_terminated,
        ),
    )
