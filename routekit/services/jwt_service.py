"""JWT validation service."""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from jose import jwk
from jose.exceptions import JOSEError
from jose.utils import base64url_decode

from routekit.config import settings

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"^-?\d+$", re.ASCII)
_DIGITS = re.compile(r"^\d+$", re.ASCII)


class JwtVerificationError(Exception):
    """Raised when a token fails verification; ``reason`` is safe to expose."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class JwtVerifier(Protocol):
    def verify(self, token: str) -> Dict[str, Any]: ...


class Hs256JwtVerifier:
    """HS256 JWT verifier with leeway and an injectable clock."""

    def __init__(
        self,
        secret: str,
        leeway_seconds: int = 0,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize verifier.

        Args:
            secret: Shared HMAC secret
            leeway_seconds: Allowed clock skew for nbf, iat and exp
            clock: Returns the current epoch seconds (default: time.time)
        """
        self.secret = secret
        self.leeway_seconds = max(0, int(leeway_seconds))
        self.clock = clock or time.time

    @classmethod
    def from_settings(cls) -> "Hs256JwtVerifier":
        return cls(settings.JWT_SECRET, settings.JWT_LEEWAY_SECONDS)

    def verify(self, token: str) -> Dict[str, Any]:
        """Verify a token and return its claims.

        Args:
            token: Compact JWS string

        Returns:
            Claims dict

        Raises:
            JwtVerificationError: On malformed token, bad signature or
                failed time-based claim
        """
        if self.secret == "":
            raise JwtVerificationError("JWT secret is not configured.")

        parts = token.split(".")
        if len(parts) != 3:
            raise JwtVerificationError("Token must have three segments.")

        encoded_header, encoded_payload, encoded_signature = parts
        header = self._decode_json(encoded_header, "header")
        if header.get("alg") != "HS256":
            raise JwtVerificationError("Unsupported token algorithm.")

        claims = self._decode_json(encoded_payload, "payload")
        signature = self._decode_segment(encoded_signature, "signature")
        signing_input = f"{encoded_header}.{encoded_payload}".encode("utf-8")

        try:
            key = jwk.construct(self.secret, algorithm="HS256")
            valid = key.verify(signing_input, signature)
        except JOSEError as exc:
            raise JwtVerificationError("Invalid signing key.") from exc
        if not valid:
            raise JwtVerificationError("Invalid token signature.")

        self._check_time_claims(claims)
        return claims

    def _check_time_claims(self, claims: Dict[str, Any]) -> None:
        now = int(self.clock())
        leeway = self.leeway_seconds

        nbf = self._numeric_claim(claims, "nbf")
        if nbf is not None and now + leeway < nbf:
            raise JwtVerificationError("Token is not valid yet.")

        iat = self._numeric_claim(claims, "iat")
        if iat is not None and iat > now + leeway:
            raise JwtVerificationError("Token issued in the future.")

        exp = self._numeric_claim(claims, "exp")
        if exp is not None and now - leeway >= exp:
            raise JwtVerificationError("Token has expired.")

    @staticmethod
    def _numeric_claim(claims: Dict[str, Any], name: str) -> Optional[int]:
        if name not in claims:
            return None
        value = claims[name]
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and _INTEGER.match(value):
            return int(value)
        raise JwtVerificationError(f"Claim {name} must be numeric.")

    @staticmethod
    def _decode_segment(segment: str, label: str) -> bytes:
        try:
            return base64url_decode(segment.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as exc:
            raise JwtVerificationError(f"Invalid token {label} encoding.") from exc

    def _decode_json(self, segment: str, label: str) -> Dict[str, Any]:
        raw = self._decode_segment(segment, label)
        try:
            decoded = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise JwtVerificationError(f"Invalid token {label}.") from exc
        if not isinstance(decoded, dict):
            raise JwtVerificationError(f"Invalid token {label}.")
        return decoded


class JwtBearerTokenVerifier:
    """Adapts a JWT verifier to the generic bearer-token verifier interface."""

    def __init__(self, verifier: JwtVerifier):
        self.verifier = verifier

    def verify(self, token: str) -> Dict[str, Any]:
        return self.verifier.verify(token)


def extract_scopes(claims: Dict[str, Any]) -> List[str]:
    """Read scopes from ``scopes`` or ``scope`` (space separated string or list)."""
    for name in ("scopes", "scope"):
        value = claims.get(name)
        if isinstance(value, str):
            return [scope for scope in value.split() if scope]
        if isinstance(value, list):
            return [scope for scope in value if isinstance(scope, str) and scope]
    return []


def scope_matches(required: str, granted: str) -> bool:
    if required == granted:
        return True
    if required.endswith("*") and granted.startswith(required[:-1]):
        return True
    if granted.endswith("*") and required.startswith(granted[:-1]):
        return True
    return False


def missing_scopes(required: Iterable[str], granted: Iterable[str]) -> List[str]:
    granted = list(granted)
    return [scope for scope in required if not any(scope_matches(scope, item) for item in granted)]


def subject_of(claims: Dict[str, Any]) -> Optional[str]:
    sub = claims.get("sub")
    if isinstance(sub, str) and sub != "":
        return sub
    if isinstance(sub, int) and not isinstance(sub, bool) and sub > 0:
        return str(sub)
    return None


def _positive_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and _DIGITS.match(value) and int(value) > 0:
        return int(value)
    return None


def user_id_of(user: Any) -> Optional[int]:
    """Positive integer id of a user-like object, dict or raw id."""
    if isinstance(user, dict):
        return _positive_id(user.get("id", user.get("ID")))
    if isinstance(user, (int, str)):
        return _positive_id(user)
    for attribute in ("id", "ID"):
        if hasattr(user, attribute):
            return _positive_id(getattr(user, attribute))
    return None


class ClaimsUserMapper:
    """Maps verified claims to a local user id."""

    ID_CLAIMS = ("user_id", "uid", "wp_user_id", "sub")
    EMAIL_CLAIMS = ("email",)
    LOGIN_CLAIMS = ("username", "login", "user_login")

    def __init__(
        self,
        user_by_email: Optional[Callable[[str], Any]] = None,
        user_by_login: Optional[Callable[[str], Any]] = None,
        resolver: Optional[Callable[[Dict[str, Any]], Optional[int]]] = None,
    ):
        self.user_by_email = user_by_email
        self.user_by_login = user_by_login
        self.resolver = resolver

    def map(self, claims: Dict[str, Any]) -> Optional[int]:
        if self.resolver is not None:
            resolved = _positive_id(self.resolver(claims))
            if resolved is not None:
                return resolved

        for name in self.ID_CLAIMS:
            user_id = _positive_id(claims.get(name))
            if user_id is not None:
                return user_id

        lookups = ((self.EMAIL_CLAIMS, self.user_by_email), (self.LOGIN_CLAIMS, self.user_by_login))
        for names, lookup in lookups:
            if lookup is None:
                continue
            for name in names:
                value = claims.get(name)
                if isinstance(value, str) and value != "":
                    user_id = user_id_of(lookup(value))
                    if user_id is not None:
                        return user_id

        logger.debug("No local user matched the token claims")
        return None
