import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core.metrics import STORAGE_ERRORS
from marketplace.core.request_context import request_id_ctx_var, route_path

logger = logging.getLogger("marketplace.errors")

STORAGE_UNAVAILABLE_MESSAGE = "Something went wrong. Please try again."


def error_response(
    status_code: int,
    code: str,
    message: str,
    detail: Any,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Every error leaves the API in this one envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "detail": detail},
            "detail": detail,
            "request_id": request_id_ctx_var.get(),
        },
        headers=headers,
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        exc.status_code,
        code=f"http_{exc.status_code}",
        message=str(exc.detail),
        detail=exc.detail,
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    # ctx can hold the raw exception object, which is not JSON serializable.
    errors = [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Request validation failed",
        detail=errors,
    )


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    STORAGE_ERRORS.labels(path=route_path(request)).inc()
    logger.error(
        "storage_failed method=%s path=%s error=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc_info=exc,
    )
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        code="storage_unavailable",
        message=STORAGE_UNAVAILABLE_MESSAGE,
        detail=STORAGE_UNAVAILABLE_MESSAGE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
