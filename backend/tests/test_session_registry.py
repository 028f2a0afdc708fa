"""Unit tests for the in-memory session state and the token issuer."""
from datetime import datetime, timedelta, timezone
import threading

import pytest

from codesensei.config import get_settings
from codesensei.services.errors import InvalidSignatureError, TokenExpiredError, TokenRevokedError
from codesensei.services.lifecycle import SessionLifecycleManager
from codesensei.services.logout_history import LogoutHistoryLog
from codesensei.services.revocation import RevocationLedger
from codesensei.services.sessions import SessionRegistry
from codesensei.services.tokens import TokenClaims, TokenIssuer

SECRET = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_claims(account_id: str = "user-1", issued_at: datetime = START, ttl_hours: int = 24) -> TokenClaims:
    return TokenClaims(
        account_id=account_id,
        issued_at=issued_at,
        expires_at=issued_at + timedelta(hours=ttl_hours),
        token_id="jti",
    )


class TestTokenIssuer:
    def test_issue_and_verify_round_trip(self):
        issuer = TokenIssuer(SECRET)
        claims = issuer.verify(issuer.issue("user-1"))

        assert claims.account_id == "user-1"
        assert claims.expires_at - claims.issued_at == timedelta(hours=24)
        assert claims.token_id

    def test_tokens_are_unique_per_issue(self):
        issuer = TokenIssuer(SECRET)
        assert issuer.issue("user-1") != issuer.issue("user-1")

    def test_expired_and_foreign_tokens_are_distinct_errors(self):
        issuer = TokenIssuer(SECRET)
        other = TokenIssuer("z" * 8 + SECRET[8:])

        with pytest.raises(TokenExpiredError):
            issuer.verify(issuer.issue("user-1", expires_delta=timedelta(seconds=-5)))
        with pytest.raises(InvalidSignatureError):
            issuer.verify(other.issue("user-1"))
        with pytest.raises(InvalidSignatureError):
            issuer.verify("garbage")


class TestRevocationLedger:
    def test_revoke_is_idempotent(self):
        ledger = RevocationLedger()
        expires = START + timedelta(hours=1)

        assert ledger.revoke("token-a", expires) is True
        assert ledger.revoke("token-a", expires) is False
        assert ledger.is_revoked("token-a")
        assert not ledger.is_revoked("token-b")
        assert len(ledger) == 1

    def test_sweep_only_drops_naturally_expired_entries(self):
        clock = FakeClock()
        ledger = RevocationLedger(clock=clock)
        ledger.revoke("short", START + timedelta(minutes=5))
        ledger.revoke("long", START + timedelta(hours=24))

        assert ledger.sweep() == 0
        clock.advance(minutes=10)
        assert ledger.sweep() == 1
        assert not ledger.is_revoked("short")
        assert ledger.is_revoked("long")


class TestSessionRegistry:
    def test_touch_updates_activity_and_origin(self):
        clock = FakeClock()
        registry = SessionRegistry(clock=clock)
        registry.open("token-a", make_claims(), "10.0.0.1")

        clock.advance(minutes=3)
        touched = registry.touch("token-a", "10.0.0.2")

        assert touched.last_active == START + timedelta(minutes=3)
        assert touched.ip_address == "10.0.0.2"
        assert registry.get("token-a") == touched

    def test_touch_missing_token_is_noop(self):
        registry = SessionRegistry()
        assert registry.touch("missing", "10.0.0.1") is None
        assert len(registry) == 0

    def test_list_by_account_filters_owner_and_expiry(self):
        clock = FakeClock()
        registry = SessionRegistry(clock=clock)
        registry.open("a-old", make_claims("user-1", START - timedelta(hours=23)), None)
        registry.open("a-new", make_claims("user-1"), None)
        registry.open("b", make_claims("user-2"), None)

        assert [r.token for r in registry.list_by_account("user-1")] == ["a-old", "a-new"]
        clock.advance(hours=2)
        assert [r.token for r in registry.list_by_account("user-1")] == ["a-new"]
        assert registry.sweep() == 1

    def test_close_returns_removed_record(self):
        registry = SessionRegistry()
        registry.open("token-a", make_claims(), None)

        assert registry.close("token-a").token == "token-a"
        assert registry.close("token-a") is None


class TestLogoutHistoryLog:
    def test_record_computes_whole_second_duration(self):
        clock = FakeClock()
        registry = SessionRegistry(clock=clock)
        history = LogoutHistoryLog(clock=clock)
        session = registry.open("token-a", make_claims(), "10.0.0.1")

        clock.advance(seconds=90, milliseconds=700)
        entry = history.record("user-1", session, "User logged out")

        assert entry.session_duration == 90
        assert entry.ip_address == "10.0.0.1"
        assert entry.logged_out_at == clock.now

    def test_entries_are_chronological_and_reason_is_capped(self):
        clock = FakeClock()
        history = LogoutHistoryLog(reason_max_length=10, clock=clock)
        session = SessionRegistry(clock=clock).open("token-a", make_claims(), None)

        history.record("user-1", session, "first")
        clock.advance(seconds=1)
        history.record("user-1", session, "a much longer reason")

        entries = history.list_by_account("user-1")
        assert [e.reason for e in entries] == ["first", "a much lon"]
        assert history.list_by_account("user-2") == []
        assert history.purge("user-1") == 2
        assert history.list_by_account("user-1") == []


class TestSessionLifecycleManager:
    def _open_sessions(self, manager, account_id, count):
        tokens = []
        for _ in range(count):
            token = manager.issuer.issue(account_id)
            manager.sessions.open(token, manager.issuer.verify(token), "127.0.0.1")
            tokens.append(token)
        return tokens

    def test_revoked_token_never_authenticates(self):
        manager = SessionLifecycleManager.from_settings(get_settings())
        token = self._open_sessions(manager, "user-1", 1)[0]

        assert manager.authenticate(token).account_id == "user-1"
        assert manager.logout(token) is True
        for _ in range(3):
            with pytest.raises(TokenRevokedError):
                manager.authenticate(token)
        assert manager.logout(token) is False
        assert len(manager.list_logout_history("user-1")) == 1

    def test_logout_of_expired_token_closes_its_session(self):
        manager = SessionLifecycleManager.from_settings(get_settings())
        token = manager.issuer.issue("user-1", expires_delta=timedelta(seconds=-10))
        manager.sessions.open(token, make_claims("user-1"), "127.0.0.1")

        assert manager.logout(token, reason="Closing laptop") is True
        assert manager.sessions.get(token) is None
        assert [e.reason for e in manager.list_logout_history("user-1")] == ["Closing laptop"]

        # START + 24h has passed, so the revocation entry is swept
        assert manager.sweep_expired() == {"revocations": 1, "sessions": 0}
        assert manager.logout(token) is False
        assert len(manager.list_logout_history("user-1")) == 1

    def test_sweep_expired_keeps_unexpired_revocations(self):
        manager = SessionLifecycleManager.from_settings(get_settings())
        token = self._open_sessions(manager, "user-1", 1)[0]
        manager.logout(token)

        assert manager.sweep_expired() == {"revocations": 0, "sessions": 0}
        assert manager.revocations.is_revoked(token)

    def test_concurrent_logout_all_terminates_each_session_once(self):
        manager = SessionLifecycleManager.from_settings(get_settings())
        tokens = self._open_sessions(manager, "user-1", 20)
        contexts = [manager.authenticate(token) for token in tokens[:8]]
        results = []
        results_lock = threading.Lock()

        def worker(context):
            terminated = manager.logout_all(context)
            with results_lock:
                results.append(terminated)

        threads = [threading.Thread(target=worker, args=(context,)) for context in contexts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(results) == 20
        assert len(manager.list_logout_history("user-1")) == 20
        assert manager.list_sessions("user-1") == []
