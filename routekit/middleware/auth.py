"""Authentication middleware: bearer/JWT, application passwords and cookie nonces."""

import base64
import binascii
import logging
import re
from typing import Any, Callable, Iterable, Optional, Protocol

from routekit.exceptions import ApiException
from routekit.middleware.base import Middleware, Next
from routekit.models.context import AuthIdentity, RequestContext, with_identity
from routekit.models.request import request_header, request_param
from routekit.models.response import ErrorCode
from routekit.services.jwt_service import (
    ClaimsUserMapper,
    JwtVerificationError,
    extract_scopes,
    missing_scopes,
    subject_of,
    user_id_of,
)

logger = logging.getLogger(__name__)

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)
_BASIC = re.compile(r"^Basic\s+(.+)$", re.IGNORECASE)


class BearerTokenVerifier(Protocol):
    def verify(self, token: str) -> dict: ...


class JwtAuthMiddleware(Middleware):
    """Authenticates ``Authorization: Bearer`` tokens and enforces scopes."""

    provider = "jwt"

    def __init__(
        self,
        verifier: BearerTokenVerifier,
        required_scopes: Iterable[str] = (),
        user_mapper: Optional[ClaimsUserMapper] = None,
        set_current_user: Optional[Callable[[int], Any]] = None,
    ):
        """Initialize middleware.

        Args:
            verifier: Verifies a token and returns its claims
            required_scopes: Scopes every request must carry
            user_mapper: Maps claims to a local user id
            set_current_user: Host hook called with the mapped user id
        """
        self.verifier = verifier
        self.required_scopes = list(required_scopes)
        self.user_mapper = user_mapper
        self.set_current_user = set_current_user

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        match = _BEARER.match(request_header(context.request, "authorization"))
        if match is None:
            raise ApiException("Missing bearer token.", 401, ErrorCode.UNAUTHORIZED.value)

        try:
            claims = self.verifier.verify(match.group(1).strip())
        except JwtVerificationError as exc:
            logger.warning(f"Token verification failed: {exc.reason} request_id={context.request_id}")
            raise ApiException(
                "Invalid token.", 401, ErrorCode.INVALID_TOKEN.value, {"reason": exc.reason}
            ) from exc

        scopes = extract_scopes(claims)
        missing = missing_scopes(self.required_scopes, scopes)
        if missing:
            raise ApiException(
                "Insufficient scope.",
                403,
                ErrorCode.INSUFFICIENT_SCOPE.value,
                {"required": self.required_scopes, "missing": missing},
            )

        user_id = self.user_mapper.map(claims) if self.user_mapper is not None else None
        if user_id is not None and self.set_current_user is not None:
            self.set_current_user(user_id)

        identity = AuthIdentity(
            provider=self.provider,
            user_id=user_id,
            subject=subject_of(claims),
            claims=claims,
            scopes=scopes,
        )
        return call_next(with_identity(context, identity))


class BearerTokenAuthMiddleware(JwtAuthMiddleware):
    """Bearer auth over any token verifier."""

    provider = "bearer"


class ApplicationPasswordAuthMiddleware(Middleware):
    """Authenticates ``Authorization: Basic`` application passwords."""

    def __init__(
        self,
        authenticate: Callable[[str, str], Any],
        set_current_user: Optional[Callable[[int], Any]] = None,
    ):
        self.authenticate = authenticate
        self.set_current_user = set_current_user

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        header = request_header(context.request, "authorization")
        if header == "":
            raise ApiException("Missing authorization header.", 401, ErrorCode.UNAUTHORIZED.value)

        match = _BASIC.match(header)
        if match is None:
            raise ApiException("Missing authorization header.", 401, ErrorCode.UNAUTHORIZED.value)

        username, password = self._credentials(match.group(1).strip())
        user = self.authenticate(username, password)
        user_id = None if isinstance(user, (int, str)) else user_id_of(user)
        if user is None or user_id is None:
            logger.warning(f"Application password rejected for {username!r} request_id={context.request_id}")
            raise ApiException("Invalid credentials.", 401, ErrorCode.INVALID_CREDENTIALS.value)

        if self.set_current_user is not None:
            self.set_current_user(user_id)

        identity = AuthIdentity(
            provider="application_password",
            user_id=user_id,
            subject=username,
            user=user,
        )
        return call_next(with_identity(context, identity))

    @staticmethod
    def _credentials(encoded: str) -> tuple:
        invalid = ApiException(
            "Invalid authorization header.", 401, ErrorCode.INVALID_AUTHORIZATION_HEADER.value
        )
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise invalid from exc

        if ":" not in decoded:
            raise invalid
        username, password = decoded.split(":", 1)
        if username == "" or password == "":
            raise invalid
        return username, password


class CookieNonceAuthMiddleware(Middleware):
    """Authenticates logged-in cookie sessions guarded by a request nonce."""

    def __init__(
        self,
        is_logged_in: Callable[[], bool],
        verify_nonce: Callable[[str, str], bool],
        current_user_id: Optional[Callable[[], Optional[int]]] = None,
        nonce_action: str = "wp_rest",
        require_nonce: bool = True,
        require_logged_in: bool = True,
    ):
        self.is_logged_in = is_logged_in
        self.verify_nonce = verify_nonce
        self.current_user_id = current_user_id
        self.nonce_action = nonce_action
        self.require_nonce = require_nonce
        self.require_logged_in = require_logged_in

    def handle(self, context: RequestContext, call_next: Next) -> Any:
        if self.require_logged_in and not self.is_logged_in():
            raise ApiException("Authentication required.", 401, ErrorCode.UNAUTHORIZED.value)

        if self.require_nonce:
            nonce = request_header(context.request, "x-wp-nonce")
            if nonce == "":
                param = request_param(context.request, "_wpnonce")
                nonce = param.strip() if isinstance(param, str) else ""
            if nonce == "" or not self.verify_nonce(nonce, self.nonce_action):
                logger.warning(f"Invalid nonce request_id={context.request_id}")
                raise ApiException("Invalid nonce.", 403, ErrorCode.INVALID_NONCE.value)

        user_id = user_id_of(self.current_user_id()) if self.current_user_id is not None else None
        identity = AuthIdentity(provider="cookie_nonce", user_id=user_id)
        return call_next(with_identity(context, identity))
