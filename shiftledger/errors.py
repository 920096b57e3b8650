from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class InputError(ApiError):
    """Malformed date, unknown group or missing input; raised before anything is applied."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(422, "INPUT_ERROR", message, details)


class NotFoundError(ApiError):
    def __init__(self, entity: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(404, "NOT_FOUND", message, {"entity": entity, **(details or {})})
        self.entity = entity


class ConsistencyError(ApiError):
    """A dependent ledger write failed after the override row was written."""

    def __init__(self, step: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(500, "CONSISTENCY_ERROR", message, {"step": step, **(details or {})})
        self.step = step
        self.retryable = True

    def to_issue(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "step": self.step,
            "message": self.message,
            "retryable": self.retryable,
            "details": dict(self.details),
        }


class ConcurrencyError(ApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(409, "CONCURRENCY_CONFLICT", message, details)
        self.retryable = True


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=payload)
