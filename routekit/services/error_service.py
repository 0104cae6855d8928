"""Error and response normalization."""

import logging
from typing import Any, Optional, Tuple, Union

from pydantic import ValidationError
from starlette.exceptions import HTTPException

from routekit.exceptions import ApiException
from routekit.models.response import ErrorCode, Response
from routekit.services.host import HostAdapter, HostError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Unexpected error."


def classify_error(error: BaseException) -> Tuple[int, str]:
    """Return the HTTP status and error code an exception is reported with.

    Only input-validation failures (``ValueError`` and its subclasses, which
    include pydantic's ``ValidationError``) become 400 ``invalid_request``.
    Anything else without explicit status information is a 500.
    """
    if isinstance(error, ApiException):
        return error.status, error.code
    if isinstance(error, HTTPException):
        return error.status_code, ErrorNormalizer.map_http_status_to_error_code(error.status_code).value
    if isinstance(error, (ValueError, ValidationError)):
        return 400, ErrorCode.INVALID_REQUEST.value
    return 500, ErrorCode.INTERNAL_ERROR.value


class ErrorNormalizer:
    """Translates raised exceptions and host errors into the uniform error envelope."""

    @staticmethod
    def map_http_status_to_error_code(status_code: int) -> ErrorCode:
        """Map HTTP status code to error code.

        Args:
            status_code: HTTP status code

        Returns:
            ErrorCode enum
        """
        mapping = {
            400: ErrorCode.INVALID_REQUEST,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
            409: ErrorCode.CONFLICT,
            412: ErrorCode.PRECONDITION_FAILED,
            422: ErrorCode.VALIDATION_FAILED,
            429: ErrorCode.RATE_LIMITED,
            503: ErrorCode.SERVICE_UNAVAILABLE,
        }
        return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)

    def normalize(self, error: BaseException, request_id: Optional[str] = None) -> Response:
        """Normalize an exception.

        Args:
            error: Exception raised anywhere in the pipeline
            request_id: Request id echoed in the envelope

        Returns:
            Error Response
        """
        if isinstance(error, ApiException):
            self._log(error.status, error.code, error.message, request_id)
            return Response.error(
                error.code,
                error.message or DEFAULT_ERROR_MESSAGE,
                error.status,
                request_id=request_id,
                details=error.details,
            )

        status, code = classify_error(error)
        if isinstance(error, HTTPException):
            message = str(error.detail or "") or DEFAULT_ERROR_MESSAGE
            self._log(status, code, message, request_id)
            return Response.error(code, message, status, request_id=request_id)

        if status == 400:
            message = str(error) or DEFAULT_ERROR_MESSAGE
            self._log(status, code, message, request_id)
            return Response.error(code, message, status, request_id=request_id)

        logger.exception(f"Unhandled error in request {request_id}: {type(error).__name__}")
        return Response.error(
            ErrorCode.INTERNAL_ERROR,
            str(error) or DEFAULT_ERROR_MESSAGE,
            500,
            request_id=request_id,
            details={"exception": type(error).__name__},
        )

    def from_host_error(self, error: HostError, request_id: Optional[str] = None) -> Response:
        data = dict(error.data)
        status = data.pop("status", None)
        if not isinstance(status, int) or status < 400:
            status = 500

        code = error.code or ErrorCode.HOST_ERROR.value
        message = error.message or DEFAULT_ERROR_MESSAGE
        self._log(status, code, message, request_id)
        return Response.error(code, message, status, request_id=request_id, details=data)

    @staticmethod
    def _log(status: int, code: str, message: str, request_id: Optional[str]) -> None:
        log_data = {"status": status, "code": code, "message": message, "request_id": request_id}
        if status >= 500:
            logger.error(f"Error: {log_data}")
        else:
            logger.info(f"Client error: {log_data}")


class ResponseNormalizer:
    """Turns any handler result into a Response or a host-native passthrough."""

    def __init__(self, host: HostAdapter, errors: Optional[ErrorNormalizer] = None):
        self.host = host
        self.errors = errors or ErrorNormalizer()

    def normalize(self, result: Any, request_id: Optional[str] = None) -> Union[Response, Any]:
        if isinstance(result, Response):
            return result

        if self.host.is_native_response(result):
            return result

        host_error = self.host.native_error(result)
        if host_error is not None:
            return self.errors.from_host_error(host_error, request_id)

        return Response(body=result, status=200)
