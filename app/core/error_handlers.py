import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException, GeminiError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message, error_code: ErrorCode, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error_code": error_code,
            "details": details,
        },
    )


# -------------------------
# APP EXCEPTIONS
# -------------------------
async def app_exception_handler(request: Request, exc: AppException):
    return _error_response(exc.status_code, exc.detail, exc.error_code, exc.details)


# -------------------------
# FASTAPI VALIDATION
# -------------------------
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        422,
        "Invalid request data",
        ErrorCode.VALIDATION_ERROR,
        jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    return [
        {k: v for k, v in err.items() if k != "ctx"}
        for err in exc.errors()
    ]


# -------------------------
# HTTP EXCEPTIONS (mapped)
# -------------------------
HTTP_STATUS_TO_ERROR_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return _error_response(exc.status_code, exc.detail, error_code)


# -------------------------
# DB INTEGRITY ERRORS
# -------------------------
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.exception("DB Integrity error")
    return _error_response(409, "Database constraint violation", ErrorCode.CONFLICT)


# -------------------------
# AI UPSTREAM
# -------------------------
async def gemini_error_handler(request: Request, exc: GeminiError):
    logger.error("Gemini request failed: %s", exc, extra={"path": request.url.path})
    return _error_response(502, "AI service unavailable", ErrorCode.INTERNAL_ERROR)


# -------------------------
# LAST RESORT
# -------------------------
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return _error_response(500, "Something went wrong. Please try again.", ErrorCode.INTERNAL_ERROR)
