"""Authentication schemas."""
from datetime import datetime

from pydantic import EmailStr, Field

from codesensei.schemas.common import CamelModel


class UserRegister(CamelModel):
    """User registration request."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    name: str | None = Field(default=None, max_length=100)


class UserLogin(CamelModel):
    """User login request."""

    username: str = Field(..., min_length=1)  # Can be username or email
    password: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    """Optional logout body."""

    reason: str | None = None  # truncated to logout_reason_max_length when recorded


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)
    confirm_password: str | None = None


class UserResponse(CamelModel):
    """Public account view; never includes the password hash."""

    id: str
    username: str
    email: str
    name: str | None = None
    role: str
    created_at: str


class AuthData(CamelModel):
    token: str
    user: UserResponse


class SessionResponse(CamelModel):
    created_at: datetime
    expires_at: datetime
    device: str
    last_active: datetime
    ip_address: str | None = None
    is_current: bool


class SessionsData(CamelModel):
    sessions: list[SessionResponse]


class LogoutHistoryEntryResponse(CamelModel):
    token_fingerprint: str
    ip_address: str | None = None
    device: str
    logged_out_at: datetime
    reason: str
    session_duration: int


class LogoutHistoryData(CamelModel):
    history: list[LogoutHistoryEntryResponse]


class SessionsTerminatedData(CamelModel):
    sessions_terminated: int


class AccountDeletedData(CamelModel):
    reviews_deleted: int
    sessions_terminated: int
