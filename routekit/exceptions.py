"""Exception taxonomy shared by routes, middleware and resources."""

from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    """Raised when routes, resources or middleware are declared incorrectly."""


class ApiException(Exception):
    """Recoverable API error carrying an HTTP status, error code and details."""

    def __init__(
        self,
        message: str,
        status: int = 400,
        code: str = "api_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = str(code.value if hasattr(code, "value") else code)
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, code={self.code!r}, message={self.message!r})"


class ConflictException(ApiException):
    """409 Conflict."""

    def __init__(
        self,
        message: str = "Conflict.",
        code: str = "conflict",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status=409, code=code, details=details)


class PreconditionFailedException(ApiException):
    """412 Precondition Failed."""

    def __init__(
        self,
        message: str = "Precondition failed.",
        code: str = "precondition_failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status=412, code=code, details=details)
