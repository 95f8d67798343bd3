import logging
import time
import uuid

from fastapi import Request

logger = logging.getLogger("access")

REQUEST_ID_HEADER = "X-Request-ID"


def _access_fields(request: Request, status_code: int, started: float) -> dict:
    return {
        "request_id": request.state.request_id,
        "client_addr": request.client.host if request.client else "unknown",
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "process_time_ms": round((time.perf_counter() - started) * 1000, 2),
    }


async def request_logging_middleware(request: Request, call_next):
    """Echo or mint an ``X-Request-ID`` and write one access line per request."""
    request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.error("", extra=_access_fields(request, 500, started))
        raise

    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    logger.info("", extra=_access_fields(request, response.status_code, started))
    return response
