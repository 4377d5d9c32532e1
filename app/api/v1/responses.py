from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas.common import ApiResponse
from app.services.results import Result

# error code -> HTTP status; anything unlisted is a 400
STATUS_BY_ERROR: dict[str, int] = {
    "UNIT_NOT_FOUND": 404,
    "LISTING_NOT_FOUND": 404,
    "UNIT_ALREADY_LISTED": 409,
    "UNIT_HAS_ACTIVE_LEASE": 409,
    "INVALID_TRANSITION": 409,
    "TRANSACTION_FAILED": 409,
    "INVALID_UNIT_DATA": 422,
    "VALIDATION_FAILED": 422,
    "INVALID_INPUT": 400,
    "PERMISSION_DENIED": 403,
    "UNAUTHORIZED": 401,
    "CLEANUP_FAILED": 500,
    "QUERY_FAILED": 500,
    "PROPERTY_NOT_FOUND": 404,
    "APPLICATION_NOT_FOUND": 404,
}

ERROR_BY_STATUS: dict[int, str] = {
    401: "UNAUTHORIZED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_FAILED",
}


def envelope(
    *,
    success: bool,
    data: Any = None,
    error: str | None = None,
    message: str | None = None,
    status_code: int = 200,
) -> JSONResponse:
    body = ApiResponse(success=success, data=data, error=error, message=message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body.model_dump()))


def result_response(result: Result, *, success_status: int = 200) -> JSONResponse:
    if result.success:
        return envelope(success=True, data=result.data, message=result.message, status_code=success_status)
    return envelope(
        success=False,
        data=result.data,
        error=result.error,
        message=result.message,
        status_code=STATUS_BY_ERROR.get(result.error or "", 400),
    )


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return envelope(
        success=False,
        error=ERROR_BY_STATUS.get(exc.status_code, "ERROR"),
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return envelope(
        success=False,
        data={"errors": exc.errors()},
        error="VALIDATION_FAILED",
        message="Request validation failed",
        status_code=422,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
