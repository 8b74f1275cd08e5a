"""SessionTokenService tests.

Learn: The service takes an injectable clock, so expiry is tested by
moving time instead of sleeping. Tokens are built by the service under
test except where we need a token it would never issue (bad claims,
foreign secret).
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from inkwell.auth.tokens import ACCESS, REFRESH, SessionTokenService, TokenConfig
from inkwell.errors import InvalidTokenError, TokenExpiredError, TokenKindError

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"
START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta):
        self.now += delta


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def tokens(clock):
    return SessionTokenService(TokenConfig(secret=SECRET), clock=clock)


# ═══════════════════════════════════════════════════════════
# Issue + verify
# ═══════════════════════════════════════════════════════════


def test_access_token_round_trip(tokens):
    pair = tokens.issue_pair("user-1", "a@example.com")
    payload = tokens.verify_access(pair.access_token)
    assert payload.subject_id == "user-1"
    assert payload.email == "a@example.com"
    assert payload.kind == ACCESS
    assert payload.issued_at == START
    assert payload.expires_at == START + timedelta(minutes=15)


def test_refresh_token_round_trip(tokens):
    pair = tokens.issue_pair("user-1", "a@example.com")
    payload = tokens.verify_refresh(pair.refresh_token)
    assert payload.kind == REFRESH
    assert payload.expires_at == START + timedelta(days=7)


def test_token_is_compact_jws(tokens):
    token = tokens.issue("user-1", "a@example.com", ACCESS)
    assert token.count(".") == 2


def test_unknown_kind_rejected(tokens):
    with pytest.raises(ValueError):
        tokens.issue("user-1", "a@example.com", "api_key")


# ═══════════════════════════════════════════════════════════
# Kind separation
# ═══════════════════════════════════════════════════════════


def test_refresh_token_rejected_as_access(tokens):
    pair = tokens.issue_pair("user-1", "a@example.com")
    with pytest.raises(TokenKindError, match="Expected a access token"):
        tokens.verify_access(pair.refresh_token)


def test_access_token_rejected_as_refresh(tokens):
    pair = tokens.issue_pair("user-1", "a@example.com")
    with pytest.raises(TokenKindError):
        tokens.verify_refresh(pair.access_token)


def test_kind_error_is_an_invalid_token_error(tokens):
    pair = tokens.issue_pair("user-1", "a@example.com")
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(pair.refresh_token)


# ═══════════════════════════════════════════════════════════
# Expiry
# ═══════════════════════════════════════════════════════════


def test_access_token_valid_until_expiry(tokens, clock):
    token = tokens.issue("user-1", "a@example.com", ACCESS)
    clock.advance(timedelta(minutes=14, seconds=59))
    assert tokens.verify_access(token).subject_id == "user-1"


def test_access_token_expires(tokens, clock):
    token = tokens.issue("user-1", "a@example.com", ACCESS)
    clock.advance(timedelta(minutes=15))
    with pytest.raises(TokenExpiredError, match="Token has expired"):
        tokens.verify_access(token)


def test_refresh_token_expires(tokens, clock):
    token = tokens.issue("user-1", "a@example.com", REFRESH)
    clock.advance(timedelta(days=7, seconds=1))
    with pytest.raises(TokenExpiredError, match="Refresh token has expired"):
        tokens.verify_refresh(token)


def test_custom_ttl(tokens, clock):
    token = tokens.issue("user-1", "a@example.com", ACCESS, ttl=timedelta(seconds=30))
    clock.advance(timedelta(seconds=31))
    with pytest.raises(TokenExpiredError):
        tokens.verify_access(token)


def test_kind_checked_before_expiry(tokens, clock):
    """An expired token of the wrong kind reports the kind problem."""
    token = tokens.issue("user-1", "a@example.com", REFRESH)
    clock.advance(timedelta(days=30))
    with pytest.raises(TokenKindError):
        tokens.verify_access(token)


# ═══════════════════════════════════════════════════════════
# Invalid tokens
# ═══════════════════════════════════════════════════════════


def test_garbage_rejected(tokens):
    with pytest.raises(InvalidTokenError, match="Invalid token"):
        tokens.verify_access("not.a.token")


def test_foreign_secret_rejected(tokens, clock):
    forged = SessionTokenService(
        TokenConfig(secret="someone-elses-secret-also-long-enough-32b"), clock=clock
    ).issue("user-1", "a@example.com", ACCESS)
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(forged)


def test_tampered_payload_rejected(tokens):
    header, payload, signature = tokens.issue("user-1", "a@example.com", ACCESS).split(".")
    payload = payload[:5] + ("x" if payload[5] != "x" else "y") + payload[6:]
    tampered = ".".join([header, payload, signature])
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(tampered)


def test_missing_claim_rejected(tokens):
    token = jwt.encode(
        {"sub": "user-1", "kind": ACCESS, "iat": 0, "exp": 2**31},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        tokens.verify_access(token)


def test_expiry_uses_injected_clock_not_wall_clock(clock):
    """A token already expired by wall-clock time is fine if the clock says so."""
    clock.now = datetime(2001, 1, 1, tzinfo=timezone.utc)
    service = SessionTokenService(TokenConfig(secret=SECRET), clock=clock)
    token = service.issue("user-1", "a@example.com", ACCESS)
    assert service.verify_access(token).subject_id == "user-1"
