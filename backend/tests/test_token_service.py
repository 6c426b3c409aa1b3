from datetime import timedelta

from jose import jwt

from wordle_identity.core.database import utcnow
from wordle_identity.core.result import AuthErrorKind
from wordle_identity.services.token_service import TokenKind

from conftest import make_token_service


def test_access_token_round_trip(tokens):
    pair = tokens.issue_pair(7, "alice", "alice@example.com")
    result = tokens.verify(pair.access_token, TokenKind.ACCESS)
    assert result.ok
    assert result.value.account_id == 7
    assert result.value.username == "alice"
    assert result.value.email == "alice@example.com"
    assert result.value.kind == TokenKind.ACCESS


def test_refresh_token_round_trip(tokens):
    pair = tokens.issue_pair(9, "bob", "bob@example.com")
    result = tokens.verify(pair.refresh_token, TokenKind.REFRESH)
    assert result.ok
    assert result.value.kind == TokenKind.REFRESH


def test_expiries_follow_configured_ttls(tokens):
    before = utcnow()
    pair = tokens.issue_pair(1, "alice", "alice@example.com")
    assert timedelta(minutes=59) < pair.access_expires_at - before <= timedelta(hours=1, seconds=1)
    assert timedelta(days=6, hours=23) < pair.refresh_expires_at - before <= timedelta(days=7, seconds=1)


def test_access_token_rejected_as_refresh(tokens):
    pair = tokens.issue_pair(1, "alice", "alice@example.com")
    result = tokens.verify(pair.access_token, TokenKind.REFRESH)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_WRONG_KIND


def test_refresh_token_rejected_as_access(tokens):
    pair = tokens.issue_pair(1, "alice", "alice@example.com")
    result = tokens.verify(pair.refresh_token, TokenKind.ACCESS)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_WRONG_KIND


def test_expired_token_is_distinct_from_invalid():
    expired = make_token_service(access_ttl=timedelta(seconds=-5))
    pair = expired.issue_pair(1, "alice", "alice@example.com")
    result = expired.verify(pair.access_token, TokenKind.ACCESS)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_EXPIRED


def test_foreign_signature_is_invalid(tokens):
    other = make_token_service(secret_key="some-other-access-secret-0123456789abcd")
    pair = other.issue_pair(1, "alice", "alice@example.com")
    result = tokens.verify(pair.access_token, TokenKind.ACCESS)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_INVALID


def test_wrong_audience_is_invalid(tokens):
    other = make_token_service(audience="some-other-app")
    pair = other.issue_pair(1, "alice", "alice@example.com")
    result = tokens.verify(pair.access_token, TokenKind.ACCESS)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_INVALID


def test_garbage_and_empty_tokens_are_invalid(tokens):
    for token in ("not-a-jwt", "a.b.c", ""):
        result = tokens.verify(token, TokenKind.ACCESS)
        assert not result.ok
        assert result.kind == AuthErrorKind.TOKEN_INVALID


def test_signed_token_missing_identity_claims_is_invalid(tokens):
    now = utcnow()
    token = jwt.encode(
        {
            "sub": "3",
            "kind": "access",
            "iss": tokens.issuer,
            "aud": tokens.audience,
            "iat": now,
            "exp": now + timedelta(minutes=5),
        },
        "test-access-secret-0123456789abcdef0123",
        algorithm="HS256",
    )
    result = tokens.verify(token, TokenKind.ACCESS)
    assert not result.ok
    assert result.kind == AuthErrorKind.TOKEN_INVALID


def test_every_issued_token_is_unique(tokens):
    first = tokens.issue_pair(1, "alice", "alice@example.com")
    second = tokens.issue_pair(1, "alice", "alice@example.com")
    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token
