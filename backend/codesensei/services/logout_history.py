"""Per-account audit log of terminated sessions."""
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import threading

from codesensei.services.sessions import SessionRecord
from codesensei.services.tokens import token_fingerprint


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogoutHistoryEntry:
    token_fingerprint: str
    ip_address: str | None
    device: str
    logged_out_at: datetime
    reason: str
    session_duration: int  # whole seconds


class LogoutHistoryLog:
    """Append-only, thread-safe logout history keyed by account id."""

    def __init__(self, reason_max_length: int = 200, clock: Callable[[], datetime] = _utcnow):
        self._reason_max_length = reason_max_length
        self._clock = clock
        self._entries: dict[str, list[LogoutHistoryEntry]] = {}
        self._lock = threading.Lock()

    def record(self, account_id: str, session: SessionRecord, reason: str) -> LogoutHistoryEntry:
        now = self._clock()
        duration = max(0, int((now - session.created_at).total_seconds()))
        entry = LogoutHistoryEntry(
            token_fingerprint=token_fingerprint(session.token),
            ip_address=session.ip_address,
            device=session.device,
            logged_out_at=now,
            reason=reason[: self._reason_max_length],
            session_duration=duration,
        )
        with self._lock:
            self._entries.setdefault(account_id, []).append(entry)
        return entry

    def list_by_account(self, account_id: str) -> list[LogoutHistoryEntry]:
        """Chronological history for an account."""
        with self._lock:
            return list(self._entries.get(account_id, ()))

    def purge(self, account_id: str) -> int:
        with self._lock:
            return len(self._entries.pop(account_id, ()))
