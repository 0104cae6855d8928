"""Per-request context and authentication identity models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestContext(BaseModel):
    """Immutable per-request bag passed through the middleware pipeline."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    request_id: str
    route_path: str = ""
    request: Any = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    def with_attribute(self, key: str, value: Any) -> "RequestContext":
        """Return a copy with one attribute added or overwritten."""
        attributes = dict(self.attributes)
        attributes[key] = value
        return self.model_copy(update={"attributes": attributes})

    def with_attributes(self, values: Dict[str, Any]) -> "RequestContext":
        attributes = dict(self.attributes)
        attributes.update(values)
        return self.model_copy(update={"attributes": attributes})

    def attribute(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


class AuthIdentity(BaseModel):
    """Identity established by exactly one auth middleware."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str
    user_id: Optional[int] = None
    subject: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict)
    scopes: List[str] = Field(default_factory=list)
    user: Any = None


def with_identity(context: RequestContext, identity: AuthIdentity) -> RequestContext:
    """Fold an identity into the context under the fixed attribute keys."""
    values: Dict[str, Any] = {
        "auth": {
            "provider": identity.provider,
            "userId": identity.user_id,
            "subject": identity.subject,
            "scopes": list(identity.scopes),
        }
    }
    if identity.claims:
        values["claims"] = dict(identity.claims)
    if identity.scopes:
        values["scopes"] = list(identity.scopes)
    if identity.user_id is not None:
        values["userId"] = identity.user_id
    if identity.user is not None:
        values["user"] = identity.user

    return context.with_attributes(values)


class RateLimitResult(BaseModel):
    """Outcome of one rate limiter hit."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining: int = Field(ge=0)
    reset_at: int
