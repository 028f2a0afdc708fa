"""Revocation ledger: tokens invalidated before their natural expiry."""
from collections.abc import Callable
from datetime import datetime, timezone
import hashlib
import logging
import threading

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_token(token: str) -> str:
    """Hash a token before storing it so the ledger never holds live credentials."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationLedger:
    """Thread-safe set of revoked tokens.

    Entries are kept until the token's own expiry has passed; after that the
    signature check rejects the token anyway and ``sweep`` may drop the entry.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def revoke(self, token: str, expires_at: datetime) -> bool:
        """Add ``token`` to the ledger. Returns False if it was already revoked."""
        key = hash_token(token)
        with self._lock:
            if key in self._entries:
                return False
            self._entries[key] = expires_at
            return True

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            return hash_token(token) in self._entries

    def sweep(self) -> int:
        """Drop entries whose token has naturally expired. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Revocation sweep removed {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
