"""Session tokens — JWT access/refresh pair creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), presented on every API call
- Refresh token: long-lived (7 days), used only to mint a new pair

Both carry a `kind` claim. Verification is kind-aware: an access token is
rejected by verify_refresh() (and vice versa) even though the signature is
valid, so a stolen access token can't be replayed to extend a session.

Expiry is checked against the service's clock rather than inside PyJWT, so
"expired" and "invalid" stay distinct errors and tests can move time.
There is no server-side session table and no revocation list.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from inkwell.errors import InvalidTokenError, TokenExpiredError, TokenKindError

ACCESS = "access"
REFRESH = "refresh"

REQUIRED_CLAIMS = ["sub", "email", "iat", "exp", "kind"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenConfig:
    """Signing secret and lifetimes, built once at startup."""

    secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings) -> "TokenConfig":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )


@dataclass(frozen=True)
class SessionTokenPayload:
    subject_id: str
    email: str
    issued_at: datetime
    expires_at: datetime
    kind: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionTokenService:
    """Issues and verifies signed access/refresh tokens."""

    def __init__(
        self,
        config: TokenConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self._clock = clock

    # ─── Issue ───────────────────────────────────────────

    def issue_pair(self, subject_id: str, email: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue(subject_id, email, ACCESS),
            refresh_token=self.issue(subject_id, email, REFRESH),
        )

    def issue(
        self,
        subject_id: str,
        email: str,
        kind: str,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Sign a single token of the given kind."""
        if kind not in (ACCESS, REFRESH):
            raise ValueError(f"Unknown token kind: {kind}")
        if ttl is None:
            ttl = self.config.access_ttl if kind == ACCESS else self.config.refresh_ttl
        issued = self._clock()
        payload = {
            "sub": str(subject_id),
            "email": email,
            "kind": kind,
            "iat": int(issued.timestamp()),
            "exp": int((issued + ttl).timestamp()),
        }
        return jwt.encode(payload, self.config.secret, algorithm=self.config.algorithm)

    # ─── Verify ──────────────────────────────────────────

    def verify_access(self, token: str) -> SessionTokenPayload:
        return self._verify(token, ACCESS)

    def verify_refresh(self, token: str) -> SessionTokenPayload:
        return self._verify(token, REFRESH)

    def _verify(self, token: str, expected_kind: str) -> SessionTokenPayload:
        """Check signature, then claims, then kind, then expiry.

        Raises InvalidTokenError, TokenKindError or TokenExpiredError.
        """
        try:
            claims = jwt.decode(
                token,
                self.config.secret,
                algorithms=[self.config.algorithm],
                options={"require": REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        try:
            payload = SessionTokenPayload(
                subject_id=str(claims["sub"]),
                email=str(claims["email"]),
                issued_at=datetime.fromtimestamp(int(claims["iat"]), timezone.utc),
                expires_at=datetime.fromtimestamp(int(claims["exp"]), timezone.utc),
                kind=str(claims["kind"]),
            )
        except (TypeError, ValueError, OverflowError):
            raise InvalidTokenError("Invalid token: malformed claims")

        if payload.kind != expected_kind:
            raise TokenKindError(f"Expected a {expected_kind} token")

        if payload.expires_at <= self._clock():
            label = "Refresh token" if expected_kind == REFRESH else "Token"
            raise TokenExpiredError(f"{label} has expired")

        return payload
