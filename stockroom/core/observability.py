import json
import logging
import time
import traceback
from contextvars import ContextVar
from uuid import uuid4

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockroom.core.errors import InventoryError

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
root_logger = logging.getLogger("stockroom")
logger = logging.getLogger("stockroom.api")


def setup_observability() -> None:
    # Ledger and document events log under the same "stockroom" tree.
    if root_logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)
    root_logger.propagate = False


def get_request_id() -> str:
    return request_id_ctx.get()


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    # Picked up by the request log line written in the middleware.
    request.state.error_code = code
    request.state.error_message = message
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "error": {
                "code": code,
                "message": message,
                "request_id": getattr(request.state, "request_id", None) or get_request_id(),
                "path": request.url.path,
                "details": details,
            }
        },
    )


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        event = {
            "event": "request",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        error_code = getattr(request.state, "error_code", None)
        if error_code:
            event["error_code"] = error_code
            event["error"] = request.state.error_message
        if status_code >= 500:
            logger.error(json.dumps(event))
        elif error_code:
            logger.warning(json.dumps(event))
        else:
            logger.info(json.dumps(event))
        request_id_ctx.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


async def inventory_error_handler(request: Request, exc: InventoryError):
    return _error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.to_details(),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", []) if part != "body"]
        details.append(
            {
                "field": ".".join(location) if location else "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return _error_response(
        request,
        status_code=422,
        code="validation_error",
        message="Validation failed",
        details=details,
    )


# Routing-level failures only; every stockroom route raises InventoryError.
_ROUTING_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(
        request,
        status_code=exc.status_code,
        code=_ROUTING_ERROR_CODES.get(exc.status_code, "http_error"),
        message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        json.dumps(
            {
                "event": "unhandled_exception",
                "request_id": getattr(request.state, "request_id", None) or get_request_id(),
                "path": request.url.path,
                "error": str(exc),
                "traceback": traceback.format_exc(limit=10),
            }
        )
    )
    return _error_response(
        request,
        status_code=500,
        code="internal_error",
        message="Internal server error",
    )
