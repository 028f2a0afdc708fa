"""Session lifecycle: login, authentication, logout variants and account deletion."""
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from codesensei.config import Settings
from codesensei.models.user import User
from codesensei.services import accounts
from codesensei.services.errors import (
    AccountNotFoundError,
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    InvalidSignatureError,
    RequestTimeoutError,
    TokenExpiredError,
    TokenRevokedError,
    UpstreamError,
    ValidationError,
)
from codesensei.services.logout_history import LogoutHistoryEntry, LogoutHistoryLog
from codesensei.services.revocation import RevocationLedger
from codesensei.services.sessions import SessionRecord, SessionRegistry
from codesensei.services.tokens import TokenClaims, TokenIssuer, token_fingerprint

logger = logging.getLogger(__name__)

DEFAULT_LOGOUT_REASON = "User logged out"
LOGOUT_ALL_REASON = "Logged out from all devices"
LOGOUT_OTHERS_REASON = "Logged out from other device"
PASSWORD_CHANGED_REASON = "Password changed"
ACCOUNT_DELETED_REASON = "Account deleted"


@dataclass(frozen=True)
class AuthContext:
    """An authenticated request: the presented token and its live session."""

    token: str
    claims: TokenClaims
    session: SessionRecord

    @property
    def account_id(self) -> str:
        return self.claims.account_id


@dataclass(frozen=True)
class AccountDeletion:
    reviews_deleted: int
    sessions_terminated: int


def _is_store_timeout(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return "locked" in message or "timeout" in message or "timed out" in message
    return False


class SessionLifecycleManager:
    """Orchestrates the token issuer, session registry, revocation ledger,
    logout history and the durable credential/review store.

    One instance is built per process and shared by all requests. The
    in-memory registries guard themselves; nothing here holds a registry lock
    while hashing passwords or talking to the database.
    """

    def __init__(
        self,
        settings: Settings,
        issuer: TokenIssuer,
        sessions: SessionRegistry,
        revocations: RevocationLedger,
        history: LogoutHistoryLog,
    ):
        self.settings = settings
        self.issuer = issuer
        self.sessions = sessions
        self.revocations = revocations
        self.history = history

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionLifecycleManager":
        return cls(
            settings=settings,
            issuer=TokenIssuer(
                settings.secret_key,
                algorithm=settings.algorithm,
                ttl=timedelta(hours=settings.access_token_expire_hours),
            ),
            sessions=SessionRegistry(device_label=settings.session_device_label),
            revocations=RevocationLedger(),
            history=LogoutHistoryLog(reason_max_length=settings.logout_reason_max_length),
        )

    # -- issuing ---------------------------------------------------------

    def _start_session(self, user: User, ip_address: str | None) -> str:
        token = self.issuer.issue(user.id)
        claims = self.issuer.verify(token)
        self.sessions.open(token, claims, ip_address)
        return token

    def register(
        self,
        db: Session,
        username: str,
        email: str,
        password: str,
        name: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[str, User]:
        """Create an account and open its first session."""
        if len(password) < self.settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.settings.min_password_length} characters long"
            )

        try:
            if accounts.username_or_email_taken(db, username, email):
                raise ConflictError("Username or email is already taken")
            password_hash = accounts.get_password_hash(password, rounds=self.settings.bcrypt_rounds)
            user = accounts.create_user(db, username, email, password_hash, name=name)
            db.commit()
            db.refresh(user)
        except IntegrityError:
            db.rollback()
            raise ConflictError("Username or email is already taken")
        except SQLAlchemyError as exc:
            db.rollback()
            if _is_store_timeout(exc):
                logger.warning("Registration timed out waiting for the database")
                raise RequestTimeoutError("Registration request timed out. Please try again.")
            logger.error(f"Registration failed: {exc}")
            raise UpstreamError("Error during registration", detail={"error": str(exc)})

        token = self._start_session(user, ip_address)
        logger.info(f"Registered user {user.id}")
        return token, user

    def login(
        self,
        db: Session,
        username_or_email: str,
        password: str,
        ip_address: str | None = None,
    ) -> tuple[str, User]:
        """Validate credentials and open a new session."""
        try:
            user = accounts.find_by_credentials(db, username_or_email)
            deleted_match = None
            if user is None:
                deleted_match = accounts.find_any_by_credentials(db, username_or_email)
        except SQLAlchemyError as exc:
            db.rollback()
            if _is_store_timeout(exc):
                logger.warning("Login timed out waiting for the database")
                raise RequestTimeoutError("Login request timed out. Please try again.")
            logger.error(f"Login lookup failed: {exc}")
            raise UpstreamError("Error during login", detail={"error": str(exc)})

        if user is None:
            reason = "account_deleted" if deleted_match is not None and deleted_match.is_deleted else "unknown_account"
            logger.info(f"Login rejected: {reason}")
            raise InvalidCredentialsError(reason)

        if not accounts.verify_password(password, user.password_hash):
            logger.info(f"Login rejected for user {user.id}: password mismatch")
            raise InvalidCredentialsError("password_mismatch")

        token = self._start_session(user, ip_address)
        logger.info(f"User {user.id} logged in")
        return token, user

    # -- per-request -----------------------------------------------------

    def authenticate(
        self,
        token: str | None,
        ip_address: str | None = None,
        db: Session | None = None,
    ) -> AuthContext:
        """Check revocation, then signature and expiry, then the live session.

        With a ``db`` session the owning account must also still exist and not
        be soft-deleted, which rejects sessions left behind by an account
        deletion whose in-memory cleanup did not complete.
        """
        if not token:
            raise AuthenticationError("Authentication required")

        if self.revocations.is_revoked(token):
            raise TokenRevokedError()

        try:
            claims = self.issuer.verify(token)
        except AuthenticationError as exc:
            logger.info(f"Token {token_fingerprint(token)} rejected: {type(exc).__name__}")
            raise

        if db is not None and accounts.get_active_user(db, claims.account_id) is None:
            logger.info(f"Token {token_fingerprint(token)} belongs to a missing or deleted account")
            raise AuthenticationError("User not found")

        session = self.sessions.touch(token, ip_address)
        if session is None:
            # Signed and unexpired, but unknown to this process (e.g. issued before a restart)
            logger.info(f"Token {token_fingerprint(token)} has no live session")
            raise AuthenticationError("Invalid or expired token")

        return AuthContext(token=token, claims=claims, session=session)

    def list_sessions(self, account_id: str) -> list[SessionRecord]:
        return self.sessions.list_by_account(account_id)

    def list_logout_history(self, account_id: str) -> list[LogoutHistoryEntry]:
        return self.history.list_by_account(account_id)

    # -- revocation ------------------------------------------------------

    def _revoke(
        self,
        token: str,
        account_id: str,
        expires_at: datetime,
        reason: str,
        known_session: SessionRecord | None = None,
    ) -> bool:
        """Revoke, close and record one token. Returns False if already revoked.

        Only the caller that wins the revocation writes history, so concurrent
        logouts of the same token never duplicate an entry.
        """
        newly_revoked = self.revocations.revoke(token, expires_at)
        session = self.sessions.close(token) or known_session
        if newly_revoked and session is not None:
            self.history.record(account_id, session, reason)
        return newly_revoked

    def _revoke_sessions(self, records: list[SessionRecord], reason: str) -> int:
        terminated = 0
        for record in records:
            if self._revoke(record.token, record.account_id, record.expires_at, reason, known_session=record):
                terminated += 1
        return terminated

    def logout(self, token: str, reason: str | None = None) -> bool:
        """Revoke a single token. Repeating it on a revoked token is a no-op.

        Expired or unverifiable tokens never fail a logout: any session they
        still hold is closed and recorded, otherwise nothing happens.
        """
        if self.revocations.is_revoked(token):
            return False
        reason = reason or DEFAULT_LOGOUT_REASON
        try:
            claims = self.issuer.verify(token)
        except (TokenExpiredError, InvalidSignatureError) as exc:
            session = self.sessions.get(token)
            if session is None:
                logger.info(f"Logout of token {token_fingerprint(token)} without a session: {type(exc).__name__}")
                return False
            return self._revoke(token, session.account_id, session.expires_at, reason, known_session=session)

        revoked = self._revoke(
            token,
            claims.account_id,
            claims.expires_at,
            reason,
            known_session=self.sessions.get(token),
        )
        if revoked:
            logger.info(f"User {claims.account_id} logged out one session")
        return revoked

    def logout_all(self, context: AuthContext) -> int:
        """Revoke every live session of the caller, the current one included."""
        records = self.sessions.list_by_account(context.account_id)
        terminated = self._revoke_sessions(records, LOGOUT_ALL_REASON)
        logger.info(f"User {context.account_id} logged out of {terminated} sessions")
        return terminated

    def logout_others(self, context: AuthContext) -> int:
        """Revoke every live session of the caller except the presented one."""
        records = [
            record
            for record in self.sessions.list_by_account(context.account_id)
            if record.token != context.token
        ]
        terminated = self._revoke_sessions(records, LOGOUT_OTHERS_REASON)
        logger.info(f"User {context.account_id} logged out of {terminated} other sessions")
        return terminated

    # -- credential mutation --------------------------------------------

    def change_password(
        self,
        db: Session,
        context: AuthContext,
        current_password: str,
        new_password: str,
        confirm_password: str | None = None,
    ) -> None:
        """Replace the password, then revoke the presented token to force re-login."""
        if not current_password or not new_password:
            raise ValidationError("Both current password and new password are required")
        if len(new_password) < self.settings.min_password_length:
            raise ValidationError(
                f"New password must be at least {self.settings.min_password_length} characters long"
            )
        if confirm_password is not None and confirm_password != new_password:
            raise ValidationError("New password and confirmation do not match")

        user = accounts.get_active_user(db, context.account_id)
        if user is None:
            raise AccountNotFoundError()
        if not accounts.verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        try:
            user.password_hash = accounts.get_password_hash(new_password, rounds=self.settings.bcrypt_rounds)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Password change failed for user {user.id}: {exc}")
            raise UpstreamError("Error changing password", detail={"error": str(exc)})

        self._revoke(
            context.token,
            context.account_id,
            context.claims.expires_at,
            PASSWORD_CHANGED_REASON,
            known_session=context.session,
        )
        logger.info(f"User {user.id} changed password")

    def delete_account(self, db: Session, account_id: str) -> AccountDeletion:
        """Delete reviews and account in one transaction, then drop sessions.

        The in-memory cleanup only runs after commit. It is best-effort: a
        failure there is logged and does not fail the request, since the
        account is already gone and its tokens can no longer resolve a user.
        """
        try:
            user = db.get(User, account_id)
            if user is None or user.is_deleted:
                raise AccountNotFoundError()
            accounts.mark_deleted(db, user)
            reviews_deleted = accounts.delete_reviews_for_user(db, account_id)
            accounts.hard_delete_user(db, user)
            db.commit()
        except AccountNotFoundError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Account deletion for user {account_id} rolled back: {exc}")
            raise UpstreamError("Error deleting account", detail={"error": str(exc)})

        logger.info(f"Deleted user {account_id} and {reviews_deleted} reviews")

        sessions_terminated = 0
        try:
            records = self.sessions.list_by_account(account_id)
            sessions_terminated = self._revoke_sessions(records, ACCOUNT_DELETED_REASON)
            self.history.purge(account_id)
        except Exception:
            logger.exception(f"Session cleanup after deleting user {account_id} did not complete")
        else:
            logger.info(f"Revoked {sessions_terminated} sessions for deleted user {account_id}")

        return AccountDeletion(reviews_deleted=reviews_deleted, sessions_terminated=sessions_terminated)

    # -- maintenance -----------------------------------------------------

    def sweep_expired(self) -> dict[str, int]:
        """Evict revocation and session entries whose tokens have expired."""
        return {
            "revocations": self.revocations.sweep(),
            "sessions": self.sessions.sweep(),
        }
