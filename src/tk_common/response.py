"""Unified API response envelope.

Every endpoint, success or failure, answers with:
{
    "code": 0,           // 0=success, otherwise an AppError code
    "message": "success",
    "data": { ... },     // null on error
    "timestamp": "...",
    "request_id": "..."  // same id the request log line carries
}
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request

from src.tk_common.errors import AppError


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    request_id: str = Field(default_factory=_new_request_id)


def request_id_of(request: Request | None) -> str:
    """The id RequestLogMiddleware assigned, or a fresh one outside the middleware."""
    if request is None:
        return _new_request_id()
    return getattr(request.state, "request_id", None) or _new_request_id()


def success_response(
    data: Any = None, request: Request | None = None, message: str = "success"
) -> ApiResponse:
    return ApiResponse(code=0, message=message, data=data, request_id=request_id_of(request))


def error_response(err: AppError, request: Request | None = None) -> ApiResponse:
    return ApiResponse(
        code=err.code, message=err.message, data=None, request_id=request_id_of(request)
    )
