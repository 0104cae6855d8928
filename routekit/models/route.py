"""Route definition, route metadata and contract records."""

import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

_REGEX_GROUP = re.compile(r"\(\?P<([a-zA-Z0-9_]+)>[^)]+\)")
_NON_WORD = re.compile(r"[^a-zA-Z0-9_]")

KNOWN_META_KEYS = (
    "operationId",
    "tags",
    "scopes",
    "parameters",
    "requestSchema",
    "responseSchema",
    "openapi",
)


def normalize_uri(uri: str) -> str:
    """Leading slash, no trailing slash, root stays ``/``."""
    normalized = "/" + uri.strip("/")
    return normalized if normalized == "/" else normalized.rstrip("/")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str) and item != ""]


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _pascal(segment: str) -> str:
    words = _NON_WORD.sub("_", segment).lower().split("_")
    return "".join(word[:1].upper() + word[1:] for word in words if word)


class RouteMeta:
    """Normalizes free-form route meta into the shape documentation tools consume."""

    @staticmethod
    def default_operation_id(method: str, uri: str) -> str:
        clean = uri.strip("/")
        if clean == "":
            return method.lower() + "Root"

        clean = _REGEX_GROUP.sub(r"\1", clean)
        segments = [part for part in clean.split("/") if part]
        return method.lower() + "".join(_pascal(segment) for segment in segments)

    @staticmethod
    def normalize(meta: Dict[str, Any], method: str, uri: str) -> Dict[str, Any]:
        """Normalize route meta.

        Args:
            meta: Raw meta map as declared on the route
            method: HTTP method
            uri: Normalized route URI

        Returns:
            Meta map with operationId, tags, scopes, parameters, schema refs
            and the ``openapi.include`` flag; unknown keys are kept.
        """
        operation_id = _string_or_none(meta.get("operationId"))
        if not operation_id:
            operation_id = RouteMeta.default_operation_id(method, uri)

        scopes = _string_list(meta.get("scopes"))
        if not scopes:
            policy = meta.get("policy")
            if isinstance(policy, dict):
                scopes = _string_list(policy.get("scopes"))

        parameters = meta.get("parameters")
        openapi = meta.get("openapi")
        include = openapi.get("include") if isinstance(openapi, dict) else None

        normalized = {key: value for key, value in meta.items() if key not in KNOWN_META_KEYS}
        normalized.update(
            {
                "operationId": operation_id,
                "tags": _string_list(meta.get("tags")),
                "scopes": scopes,
                "parameters": list(parameters) if isinstance(parameters, list) else [],
                "requestSchema": _string_or_none(meta.get("requestSchema")),
                "responseSchema": _string_or_none(meta.get("responseSchema")),
                "openapi": {"include": include if isinstance(include, bool) else True},
            }
        )
        return normalized


class RouteDefinition(BaseModel):
    """One declared route. Every ``with_*`` call returns a new copy."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: str
    uri: str
    handler: Any
    middlewares: Tuple[Any, ...] = ()
    args: Dict[str, Any] = Field(default_factory=dict)
    permission_callback: Optional[Callable[..., Any]] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    def with_middlewares(self, middlewares: List[Any]) -> "RouteDefinition":
        return self.model_copy(update={"middlewares": tuple(middlewares)})

    def with_args(self, args: Dict[str, Any]) -> "RouteDefinition":
        return self.model_copy(update={"args": dict(args)})

    def with_permission_callback(self, callback: Callable[..., Any]) -> "RouteDefinition":
        return self.model_copy(update={"permission_callback": callback})

    def with_meta(self, meta: Dict[str, Any]) -> "RouteDefinition":
        return self.model_copy(update={"meta": RouteMeta.normalize(meta, self.method, self.uri)})


class Contract(BaseModel):
    """The (namespace, method, path, args, meta) record describing one route."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    method: str
    path: str
    args: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)
