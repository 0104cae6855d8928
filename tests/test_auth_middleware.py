"""Tests for the authentication middleware."""

import base64
import time

import pytest
from jose import jwt

from routekit.exceptions import ApiException
from routekit.middleware import (
    ApplicationPasswordAuthMiddleware,
    BearerTokenAuthMiddleware,
    CookieNonceAuthMiddleware,
    JwtAuthMiddleware,
)
from routekit.models.context import RequestContext
from routekit.models.request import HttpRequest
from routekit.services.jwt_service import ClaimsUserMapper, Hs256JwtVerifier

SECRET = "auth-secret"


def context_for(**kwargs):
    return RequestContext(request_id="req_test", route_path="/secure", request=HttpRequest(**kwargs))


def bearer(claims):
    payload = {"exp": int(time.time()) + 60}
    payload.update(claims)
    return {"Authorization": "Bearer " + jwt.encode(payload, SECRET, algorithm="HS256")}


def basic(username, password):
    return {"Authorization": "Basic " + base64.b64encode(f"{username}:{password}".encode()).decode()}


def passthrough(context):
    return context


@pytest.fixture
def jwt_middleware():
    """JWT middleware requiring orders:read."""
    return JwtAuthMiddleware(Hs256JwtVerifier(SECRET), required_scopes=["orders:read"])


def test_jwt_sets_identity():
    """Test a valid token with a wildcard scope authenticates."""
    seen = []
    middleware = JwtAuthMiddleware(
        Hs256JwtVerifier(SECRET),
        required_scopes=["orders:read"],
        user_mapper=ClaimsUserMapper(),
        set_current_user=seen.append,
    )
    result = middleware(context_for(headers=bearer({"sub": "17", "scope": "orders:*"})), passthrough)

    assert result.attribute("auth") == {
        "provider": "jwt",
        "userId": 17,
        "subject": "17",
        "scopes": ["orders:*"],
    }
    assert result.attribute("userId") == 17
    assert result.attribute("claims")["sub"] == "17"
    assert seen == [17]


def test_jwt_missing_token(jwt_middleware):
    """Test request without a bearer token."""
    with pytest.raises(ApiException) as exc_info:
        jwt_middleware(context_for(), passthrough)
    assert exc_info.value.status == 401
    assert exc_info.value.code == "unauthorized"


def test_jwt_invalid_token(jwt_middleware):
    """Test an invalid token carries the failure reason."""
    with pytest.raises(ApiException) as exc_info:
        jwt_middleware(context_for(headers={"Authorization": "Bearer invalid.token.here"}), passthrough)
    assert exc_info.value.status == 401
    assert exc_info.value.code == "invalid_token"
    assert "reason" in exc_info.value.details


def test_jwt_insufficient_scope(jwt_middleware):
    """Test missing scopes produce 403 with the missing list."""
    with pytest.raises(ApiException) as exc_info:
        jwt_middleware(context_for(headers=bearer({"scope": "users:read"})), passthrough)
    assert exc_info.value.status == 403
    assert exc_info.value.code == "insufficient_scope"
    assert exc_info.value.details == {"required": ["orders:read"], "missing": ["orders:read"]}


def test_bearer_provider_name():
    """Test the generic bearer middleware reports its own provider."""

    class StaticVerifier:
        def verify(self, token):
            return {"sub": "svc", "scopes": ["a"]}

    result = BearerTokenAuthMiddleware(StaticVerifier())(
        context_for(headers={"Authorization": "Bearer opaque"}), passthrough
    )
    assert result.attribute("auth")["provider"] == "bearer"
    assert result.attribute("auth")["subject"] == "svc"


def test_application_password():
    """Test Basic credentials resolve to a user."""
    users = {("ada", "pw"): {"id": 3, "login": "ada"}}
    middleware = ApplicationPasswordAuthMiddleware(lambda user, password: users.get((user, password)))

    result = middleware(context_for(headers=basic("ada", "pw")), passthrough)
    assert result.attribute("auth")["provider"] == "application_password"
    assert result.attribute("userId") == 3
    assert result.attribute("user") == {"id": 3, "login": "ada"}

    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(headers=basic("ada", "wrong")), passthrough)
    assert exc_info.value.code == "invalid_credentials"


def test_application_password_rejects_raw_ids():
    """Test an authenticate callback returning a bare id is not a user."""
    middleware = ApplicationPasswordAuthMiddleware(lambda user, password: 3)
    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(headers=basic("ada", "pw")), passthrough)
    assert exc_info.value.code == "invalid_credentials"


def test_application_password_bad_headers():
    """Test missing and malformed Basic headers."""
    middleware = ApplicationPasswordAuthMiddleware(lambda user, password: None)

    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(), passthrough)
    assert exc_info.value.code == "unauthorized"

    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(headers={"Authorization": "Basic !!!"}), passthrough)
    assert exc_info.value.code == "invalid_authorization_header"


def test_cookie_nonce():
    """Test logged-in sessions need a valid nonce from header or param."""
    middleware = CookieNonceAuthMiddleware(
        is_logged_in=lambda: True,
        verify_nonce=lambda nonce, action: nonce == "good" and action == "wp_rest",
        current_user_id=lambda: 8,
    )

    by_header = middleware(context_for(headers={"X-WP-Nonce": "good"}), passthrough)
    assert by_header.attribute("auth")["provider"] == "cookie_nonce"
    assert by_header.attribute("userId") == 8

    by_param = middleware(context_for(query={"_wpnonce": "good"}), passthrough)
    assert by_param.attribute("userId") == 8

    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(headers={"X-WP-Nonce": "bad"}), passthrough)
    assert exc_info.value.status == 403
    assert exc_info.value.code == "invalid_nonce"


def test_cookie_requires_login():
    """Test anonymous requests are rejected before the nonce check."""
    middleware = CookieNonceAuthMiddleware(is_logged_in=lambda: False, verify_nonce=lambda nonce, action: True)
    with pytest.raises(ApiException) as exc_info:
        middleware(context_for(headers={"X-WP-Nonce": "good"}), passthrough)
    assert exc_info.value.status == 401
