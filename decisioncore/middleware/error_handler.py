"""
Error translation for every HTTP request.

Domain failures (``DecisionCoreError``) surface with their own status, error
code and client-safe message. Anything unexpected becomes a generic 500 whose
traceback only reaches the logs. Both carry an ``error_id`` that matches the
log line.
"""

import traceback
import uuid
from typing import Any

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from decisioncore.config import settings
from decisioncore.exceptions import DecisionCoreError

logger = structlog.get_logger(__name__)

GENERIC_MESSAGE = "An internal error occurred. Please try again later."


def _error_response(status: int, message: str, error_id: str, **extra: Any) -> JSONResponse:
    body = {"error": message, "error_id": error_id, "status": status}
    body.update({key: value for key, value in extra.items() if value})
    return JSONResponse(status_code=status, content=body)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Registered last so it wraps the tenant middleware and every router."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except DecisionCoreError as exc:
            return self._domain_error(request, exc)
        except Exception as exc:
            return self._unexpected_error(request, exc)

    @staticmethod
    def _domain_error(request: Request, exc: DecisionCoreError) -> JSONResponse:
        error_id = uuid.uuid4().hex
        logger.info(
            "request_rejected",
            error_id=error_id,
            method=request.method,
            path=request.url.path,
            error_code=exc.error_code.value,
            status=exc.status_code,
        )
        return _error_response(
            exc.status_code,
            exc.message,
            error_id,
            error_code=exc.error_code.value,
            details=exc.details,
        )

    @staticmethod
    def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        error_id = uuid.uuid4().hex
        logger.error(
            "request_crashed",
            error_id=error_id,
            method=request.method,
            path=request.url.path,
            error=str(exc),
            traceback=traceback.format_exc(),
        )
        hint = type(exc).__name__ if settings.debug else None
        return _error_response(500, GENERIC_MESSAGE, error_id, debug_hint=hint)
