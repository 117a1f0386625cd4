"""
Error codes and exception handlers

Every error leaves the API as {"error": "<snake_case_code>"} so the frontend
can switch on the code. Stack traces stay in the server log.
"""

import re
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger(__name__)


class ApiError(HTTPException):
    """HTTP error carrying a machine-readable code"""

    def __init__(self, status_code: int, code: str, message: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=code, headers=headers)
        self.code = code
        self.message = message


def bad_request(code: str, message: Optional[str] = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, code, message)


def forbidden(code: str = "forbidden") -> ApiError:
    return ApiError(status.HTTP_403_FORBIDDEN, code)


def not_found(code: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, code)


def conflict(code: str, message: Optional[str] = None) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, code, message)


def server_error(code: str) -> ApiError:
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, code)


_NON_WORD = re.compile(r"[^a-z0-9]+")


def to_error_code(detail: Any) -> str:
    """Turn a free-text HTTPException detail into a snake_case code"""
    if not isinstance(detail, str) or not detail:
        return "error"
    return _NON_WORD.sub("_", detail.lower()).strip("_") or "error"


def _body(code: str, message: Optional[str] = None, **extra) -> dict:
    body = {"error": code}
    if message:
        body["message"] = message
    body.update(extra)
    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.code, exc.message),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        code = "unauthorized"
    elif exc.status_code == status.HTTP_403_FORBIDDEN and exc.detail == "Not authenticated":
        # HTTPBearer reports a missing header as 403
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=_body("unauthorized"))
    else:
        code = to_error_code(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body("invalid_request", details=jsonable_encoder(exc.errors())),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body("internal_error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
