"""Host adapters: how results are recognized and returned for a given host."""

from typing import Any, Dict, Optional, Protocol

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse
from starlette.responses import Response as StarletteResponse

from routekit.models.response import Response


class HostError(BaseModel):
    """Host-native error value (code, message and data with an optional status)."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class HostResponse(BaseModel):
    """Host-native response value, passed through untouched."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: int = 200
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)


class HostAdapter(Protocol):
    """Explicit per-host adapter, selected when the dispatcher is built."""

    def is_native_response(self, value: Any) -> bool: ...

    def native_error(self, value: Any) -> Optional[HostError]: ...

    def to_native(self, response: Response) -> Any: ...


class PlainHost:
    """Host returning plain ``{status, body, headers}`` dicts."""

    def is_native_response(self, value: Any) -> bool:
        return isinstance(value, HostResponse)

    def native_error(self, value: Any) -> Optional[HostError]:
        return value if isinstance(value, HostError) else None

    def to_native(self, response: Response) -> Dict[str, Any]:
        return {
            "status": response.status,
            "body": response.body,
            "headers": dict(response.headers),
        }


class StarletteHost:
    """Host binding for FastAPI/Starlette applications."""

    def is_native_response(self, value: Any) -> bool:
        return isinstance(value, StarletteResponse)

    def native_error(self, value: Any) -> Optional[HostError]:
        if not isinstance(value, HTTPException):
            return None
        data: Dict[str, Any] = {"status": value.status_code}
        return HostError(code="", message=str(value.detail or ""), data=data)

    def to_native(self, response: Response) -> StarletteResponse:
        return JSONResponse(
            content=jsonable_encoder(response.body),
            status_code=response.status,
            headers=dict(response.headers),
        )
