"""Tests for JWT verification and scope helpers."""

import pytest
from jose import jwt

from routekit.services.jwt_service import (
    ClaimsUserMapper,
    Hs256JwtVerifier,
    JwtBearerTokenVerifier,
    JwtVerificationError,
    extract_scopes,
    missing_scopes,
    scope_matches,
    user_id_of,
)

NOW = 1_700_000_000
SECRET = "unit-secret"


def token(claims, secret=SECRET, algorithm="HS256"):
    return jwt.encode(claims, secret, algorithm=algorithm)


@pytest.fixture
def verifier():
    """Verifier pinned to a fixed clock."""
    return Hs256JwtVerifier(SECRET, clock=lambda: NOW)


def test_valid_token_returns_claims(verifier):
    """Test a token expiring in two minutes verifies at issue time."""
    claims = verifier.verify(token({"sub": "7", "exp": NOW + 120}))
    assert claims["sub"] == "7"


def test_wrong_secret_rejected(verifier):
    """Test signature check with a different secret."""
    with pytest.raises(JwtVerificationError) as exc_info:
        verifier.verify(token({"exp": NOW + 120}, secret="other"))
    assert exc_info.value.reason == "Invalid token signature."


def test_expired_token_rejected():
    """Test token is rejected once the clock passes exp."""
    later = Hs256JwtVerifier(SECRET, clock=lambda: NOW + 121)
    with pytest.raises(JwtVerificationError):
        later.verify(token({"exp": NOW + 120}))


def test_exp_boundary_is_exclusive():
    """Test now == exp counts as expired."""
    at_exp = Hs256JwtVerifier(SECRET, clock=lambda: NOW + 120)
    with pytest.raises(JwtVerificationError):
        at_exp.verify(token({"exp": NOW + 120}))


def test_leeway_extends_expiry():
    """Test leeway tolerates small clock skew."""
    lenient = Hs256JwtVerifier(SECRET, leeway_seconds=30, clock=lambda: NOW + 121)
    assert lenient.verify(token({"exp": NOW + 120}))["exp"] == NOW + 120


def test_not_before_and_issued_at(verifier):
    """Test nbf and iat in the future are rejected."""
    with pytest.raises(JwtVerificationError):
        verifier.verify(token({"nbf": NOW + 10}))
    with pytest.raises(JwtVerificationError):
        verifier.verify(token({"iat": NOW + 10}))


def test_non_numeric_time_claim(verifier):
    """Test time claims must be integers."""
    with pytest.raises(JwtVerificationError):
        verifier.verify(token({"exp": "soon"}))


def test_numeric_string_claim_accepted(verifier):
    """Test numeric strings are read as integers."""
    assert verifier.verify(token({"exp": str(NOW + 60)}))["exp"] == str(NOW + 60)


def test_malformed_tokens(verifier):
    """Test tokens without three segments or with another algorithm."""
    with pytest.raises(JwtVerificationError):
        verifier.verify("abc.def")
    with pytest.raises(JwtVerificationError):
        verifier.verify(token({"exp": NOW + 60}, algorithm="HS512"))


def test_empty_secret_rejects_everything():
    """Test an unconfigured secret never verifies."""
    unconfigured = Hs256JwtVerifier("", clock=lambda: NOW)
    with pytest.raises(JwtVerificationError):
        unconfigured.verify(token({"exp": NOW + 60}))


def test_extract_scopes():
    """Test scopes from space separated strings or lists."""
    assert extract_scopes({"scope": "read write"}) == ["read", "write"]
    assert extract_scopes({"scopes": ["a", "", 3, "b"]}) == ["a", "b"]
    assert extract_scopes({}) == []


def test_scope_wildcards():
    """Test wildcard matching on either side."""
    assert scope_matches("orders:read", "orders:*")
    assert scope_matches("orders:*", "orders:write")
    assert not scope_matches("orders:read", "users:*")
    assert missing_scopes(["a:read", "b:read"], ["a:*"]) == ["b:read"]


def test_user_id_of():
    """Test user id extraction from dicts, objects and raw ids."""

    class User:
        ID = 9

    assert user_id_of({"id": 3}) == 3
    assert user_id_of(User()) == 9
    assert user_id_of("12") == 12
    assert user_id_of(0) is None
    assert user_id_of(True) is None


def test_claims_user_mapper():
    """Test id claims, then email lookup."""
    mapper = ClaimsUserMapper(user_by_email=lambda email: {"id": 5} if email == "a@b.c" else None)
    assert mapper.map({"user_id": "4"}) == 4
    assert mapper.map({"sub": "abc", "email": "a@b.c"}) == 5
    assert mapper.map({"sub": "abc"}) is None
    assert mapper.map({"user_id": "²", "email": "a@b.c"}) == 5


def test_bearer_adapter_delegates(verifier):
    """Test the bearer adapter returns the verifier's claims."""
    adapter = JwtBearerTokenVerifier(verifier)
    assert adapter.verify(token({"sub": "1", "exp": NOW + 5}))["sub"] == "1"
