"""Signed bearer token issuing and verification."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import hashlib
import uuid

from jose import ExpiredSignatureError, JWTError, jwt

from codesensei.services.errors import InvalidSignatureError, TokenExpiredError


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    account_id: str
    issued_at: datetime
    expires_at: datetime
    token_id: str


def token_fingerprint(token: str) -> str:
    """Short stable reference to a token, safe to log or return to clients."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


class TokenIssuer:
    """Mints and verifies HMAC-signed JWTs bound to an account id."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: timedelta = timedelta(hours=24)):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.ttl = ttl

    def issue(self, account_id: str, expires_delta: timedelta | None = None) -> str:
        """Create a token for ``account_id`` expiring after the configured TTL."""
        # JWT timestamps are whole seconds; truncate so claims round-trip exactly
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        expire = issued_at + (expires_delta if expires_delta is not None else self.ttl)
        to_encode = {
            "sub": account_id,
            "iat": issued_at,
            "exp": expire,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Verify signature and expiry.

        Raises TokenExpiredError or InvalidSignatureError; both map to the same
        client-facing 401 but stay distinct for logging.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError:
            raise InvalidSignatureError()

        account_id = payload.get("sub")
        iat = payload.get("iat")
        exp = payload.get("exp")
        if not account_id or iat is None or exp is None:
            raise InvalidSignatureError()

        try:
            issued_at = datetime.fromtimestamp(int(iat), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(exp), tz=timezone.utc)
        except (TypeError, ValueError):
            raise InvalidSignatureError()

        return TokenClaims(
            account_id=str(account_id),
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=str(payload.get("jti") or ""),
        )
