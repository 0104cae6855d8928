"""Response models for routekit."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(str, Enum):
    """Standard error codes."""

    INVALID_REQUEST = "invalid_request"
    INTERNAL_ERROR = "internal_error"
    VALIDATION_FAILED = "validation_failed"
    UNAUTHORIZED = "unauthorized"
    INVALID_TOKEN = "invalid_token"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_AUTHORIZATION_HEADER = "invalid_authorization_header"
    FORBIDDEN = "forbidden"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    INVALID_NONCE = "invalid_nonce"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CONFLICT = "conflict"
    IDEMPOTENCY_CONFLICT = "idempotency_conflict"
    IDEMPOTENCY_KEY_REQUIRED = "idempotency_key_required"
    VERSION_UNAVAILABLE = "version_unavailable"
    PRECONDITION_FAILED = "precondition_failed"
    PRECONDITION_REQUIRED = "precondition_required"
    OPTIMISTIC_LOCK_FAILED = "optimistic_lock_failed"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    HOST_ERROR = "host_error"


class ErrorDetail(BaseModel):
    """Error detail information."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    message: str
    request_id: Optional[str] = Field(default=None, alias="requestId")
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error: ErrorDetail

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "unauthorized",
                    "message": "Missing bearer token.",
                    "requestId": "req_6f1c0d2b9e5a4c47a3f8e2d1b0c9a8f7",
                    "details": {},
                }
            }
        }
    )

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Response(BaseModel):
    """Normalized handler result: body, HTTP status and response headers."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    body: Any = None
    status: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)

    def with_headers(self, headers: Dict[str, Any]) -> "Response":
        merged = dict(self.headers)
        merged.update({name: str(value) for name, value in headers.items()})
        return self.model_copy(update={"headers": merged})

    @classmethod
    def error(
        cls,
        code: str,
        message: str,
        status: int,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "Response":
        """Build a response carrying the uniform error envelope."""
        envelope = ErrorResponse(
            error=ErrorDetail(
                code=str(code.value if isinstance(code, Enum) else code),
                message=message,
                request_id=request_id,
                details=details or {},
            )
        )
        return cls(body=envelope.to_body(), status=status)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    uptime_seconds: int
    routes: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timestamp": "2024-01-10T10:30:00Z",
                "uptime_seconds": 3600,
                "routes": 4,
            }
        }
    )
