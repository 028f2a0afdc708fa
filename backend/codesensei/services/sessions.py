"""In-memory registry of live sessions keyed by token."""
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
import threading

from codesensei.services.tokens import TokenClaims


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionRecord:
    """Metadata for one issued token."""

    token: str
    account_id: str
    created_at: datetime
    expires_at: datetime
    ip_address: str | None
    last_active: datetime
    device: str


class SessionRegistry:
    """Thread-safe map of live tokens to their session metadata.

    Records are immutable; ``touch`` swaps in an updated copy so readers never
    observe a half-written record. Sessions are not persisted: a process
    restart drops every entry and forces all users to log in again.
    """

    def __init__(self, device_label: str = "Web Browser", clock: Callable[[], datetime] = _utcnow):
        self._device_label = device_label
        self._clock = clock
        self._sessions: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def open(self, token: str, claims: TokenClaims, ip_address: str | None) -> SessionRecord:
        record = SessionRecord(
            token=token,
            account_id=claims.account_id,
            created_at=claims.issued_at,
            expires_at=claims.expires_at,
            ip_address=ip_address,
            last_active=self._clock(),
            device=self._device_label,
        )
        with self._lock:
            self._sessions[token] = record
        return record

    def get(self, token: str) -> SessionRecord | None:
        with self._lock:
            return self._sessions.get(token)

    def touch(self, token: str, ip_address: str | None) -> SessionRecord | None:
        """Refresh last-active time and origin. No-op if the token has no entry."""
        now = self._clock()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            updated = replace(
                record,
                last_active=now,
                ip_address=ip_address if ip_address else record.ip_address,
            )
            self._sessions[token] = updated
            return updated

    def list_by_account(self, account_id: str) -> list[SessionRecord]:
        """Live sessions for an account, oldest first."""
        now = self._clock()
        with self._lock:
            records = [
                record
                for record in self._sessions.values()
                if record.account_id == account_id and record.expires_at > now
            ]
        return sorted(records, key=lambda record: record.created_at)

    def close(self, token: str) -> SessionRecord | None:
        """Remove and return the entry for ``token``, or None if absent."""
        with self._lock:
            return self._sessions.pop(token, None)

    def sweep(self) -> int:
        """Drop sessions past their expiry. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
