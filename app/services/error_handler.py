"""Maps exceptions to structured JSON error responses."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from app.execution.models import InvalidViewRequest
from app.execution.state import InvalidTransition
from tcms_client import DataStoreError


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorHandler:
    """Centralized error handling service."""

    @staticmethod
    def handle_exception(exc: Exception, request: Request) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", None) or str(uuid.uuid4())
        timestamp = _timestamp()

        ErrorHandler.log_error(
            exc,
            {
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )

        if isinstance(exc, HTTPException):
            status_code = exc.status_code
            content = {"detail": exc.detail, "error_code": f"HTTP_{exc.status_code}"}
        elif isinstance(exc, (ValidationError, RequestValidationError)):
            status_code = 400
            content = ErrorHandler.format_validation_error(exc)
        elif isinstance(exc, InvalidViewRequest):
            status_code = 400
            content = {"detail": str(exc), "error_code": "INVALID_REQUEST"}
        elif isinstance(exc, DataStoreError):
            status_code = 502
            content = {"detail": exc.message, "error_code": "DATA_STORE_ERROR", "table": exc.table}
        elif isinstance(exc, requests.exceptions.RequestException):
            status_code = 502
            content = {"detail": f"Data store unreachable: {exc}", "error_code": "EXTERNAL_API_ERROR"}
        elif isinstance(exc, InvalidTransition):
            status_code = 409
            content = {"detail": str(exc), "error_code": "INVALID_STATE"}
        else:
            status_code = 500
            content = {"detail": "An unexpected error occurred", "error_code": "INTERNAL_SERVER_ERROR"}

        content["timestamp"] = timestamp
        content["correlation_id"] = correlation_id
        return JSONResponse(status_code=status_code, content=content, headers={"X-Correlation-ID": correlation_id})

    @staticmethod
    def log_error(exc: Exception, context: Dict[str, Any]) -> str:
        correlation_id = context.get("correlation_id") or str(uuid.uuid4())
        print(f"[ERROR] {correlation_id} - {type(exc).__name__}: {exc} - Context: {context}", flush=True)
        return correlation_id

    @staticmethod
    def format_validation_error(exc) -> Dict[str, Any]:
        """Group pydantic error messages by field path."""
        field_errors: Dict[str, List[str]] = {}
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            field_errors.setdefault(field_path, []).append(error["msg"])
        return {
            "detail": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "field_errors": field_errors,
        }
