"""Request protocol and the concrete request model used by the FastAPI binding."""

import uuid
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator


@runtime_checkable
class RestRequest(Protocol):
    """What routekit reads from an inbound host request."""

    method: str

    def get_header(self, name: str) -> Optional[str]: ...

    def get_param(self, name: str) -> Any: ...

    def get_params(self) -> Dict[str, Any]: ...

    def get_json_params(self) -> Optional[Dict[str, Any]]: ...

    def get_body_params(self) -> Dict[str, Any]: ...


class HttpRequest(BaseModel):
    """Already-parsed inbound request."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    path: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    path_params: Dict[str, Any] = Field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None
    form: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("headers")
    @classmethod
    def _lower_headers(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name.lower(): header for name, header in value.items()}

    def get_header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def get_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        params.update(self.query)
        params.update(self.form)
        if self.json_body:
            params.update(self.json_body)
        params.update(self.path_params)
        return params

    def get_param(self, name: str) -> Any:
        return self.get_params().get(name)

    def get_json_params(self) -> Optional[Dict[str, Any]]:
        return self.json_body

    def get_body_params(self) -> Dict[str, Any]:
        return dict(self.form)

    def get_query_params(self) -> Dict[str, Any]:
        return dict(self.query)


def request_method(request: Any) -> str:
    method = getattr(request, "method", None)
    if isinstance(method, str) and method:
        return method.upper()
    return "GET"


def request_header(request: Any, name: str) -> str:
    if not isinstance(request, RestRequest):
        return ""
    value = request.get_header(name)
    return value.strip() if isinstance(value, str) else ""


def request_params(request: Any) -> Dict[str, Any]:
    if isinstance(request, RestRequest):
        params = request.get_params()
        return dict(params) if isinstance(params, dict) else {}
    if isinstance(request, dict):
        return dict(request)
    return {}


def request_param(request: Any, name: str) -> Any:
    if isinstance(request, RestRequest):
        return request.get_param(name)
    if isinstance(request, dict):
        return request.get(name)
    return None


def request_json_params(request: Any) -> Optional[Dict[str, Any]]:
    if isinstance(request, RestRequest):
        value = request.get_json_params()
        return value if isinstance(value, dict) else None
    return None


def request_body_params(request: Any) -> Dict[str, Any]:
    if isinstance(request, RestRequest):
        value = request.get_body_params()
        return value if isinstance(value, dict) else {}
    return {}


def request_id_for(request: Any) -> str:
    """Inbound ``X-Request-Id`` header, else a fresh ``req_`` id."""
    return request_header(request, "x-request-id") or "req_" + uuid.uuid4().hex
