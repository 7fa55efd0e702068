"""Custom exceptions for the FastAPI backend."""

import json
from typing import Any, Dict, Optional

from vubly.core.exceptions import (
    CallbackValidationError,
    InvalidJobRequestError,
    InvalidVideoURLError,
    SessionConflictError,
    SessionNotFoundError,
    SpeechSynthesisError,
    TranslationError,
    VublyError,
    WebhookDispatchError,
)


class APIError(Exception):
    """Base API exception class."""

    def __init__(
        self,
        detail: str,
        status_code: int = 500,
        error_code: str = "API_ERROR",
        extra: Optional[Dict[str, Any]] = None
    ):
        self.detail = detail
        self.message = detail  # Alias for compatibility
        self.status_code = status_code
        self.error_code = error_code
        self.extra = extra or {}
        self.headers: Dict[str, str] = {}
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message
            }
        }
        body.update(self.extra)
        return body

    def to_json(self) -> str:
        """Convert error to JSON string."""
        return json.dumps(self.to_dict())


class BadRequestError(APIError):
    """Malformed or unusable request exception."""

    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(
            detail=detail,
            status_code=400,
            error_code="BAD_REQUEST",
            extra=extra
        )


class NotFoundError(APIError):
    """Resource not found exception."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            detail=detail,
            status_code=404,
            error_code="NOT_FOUND"
        )


class ConflictError(APIError):
    """Resource conflict exception."""

    def __init__(self, detail: str = "Resource conflict"):
        super().__init__(
            detail=detail,
            status_code=409,
            error_code="CONFLICT_ERROR"
        )


class RangeNotSatisfiableError(APIError):
    """Requested byte range lies outside the resource."""

    def __init__(self, size: int, detail: str = "Requested range not satisfiable"):
        super().__init__(
            detail=detail,
            status_code=416,
            error_code="RANGE_NOT_SATISFIABLE"
        )
        self.size = size
        self.headers = {"Content-Range": f"bytes */{size}"}


class ExternalServiceError(APIError):
    """External service error exception."""

    def __init__(self, detail: str, service_name: str = "external"):
        super().__init__(
            detail=f"{service_name}: {detail}",
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR"
        )


def to_api_error(error: VublyError) -> APIError:
    """Map a domain exception onto the HTTP error it should surface as."""
    if isinstance(error, SessionNotFoundError):
        return NotFoundError("Session not found or expired")
    if isinstance(error, SessionConflictError):
        return ConflictError(str(error))
    if isinstance(error, CallbackValidationError):
        return BadRequestError(str(error), extra={"received": error.received})
    if isinstance(error, (InvalidVideoURLError, InvalidJobRequestError)):
        return BadRequestError(str(error))
    if isinstance(error, WebhookDispatchError):
        return ExternalServiceError(str(error), service_name="webhook")
    if isinstance(error, (TranslationError, SpeechSynthesisError)):
        return ExternalServiceError(str(error), service_name="translation")
    return APIError(str(error) or type(error).__name__)
