"""Exception handlers for the FastAPI application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import GrowWiseError, LLMGatewayError, RateLimitedError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


def create_error_response(
    request: Request, status_code: int, message: str, headers: dict | None = None, **extra
) -> JSONResponse:
    """Create the `{error, requestId?}` body shared by every endpoint."""
    content = {"error": message}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        content["requestId"] = request_id
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def growwise_exception_handler(request: Request, exc: GrowWiseError) -> JSONResponse:
    if isinstance(exc, LLMGatewayError):
        logger.error(
            "LLM gateway failure (%s, upstream status %s): %s",
            exc.category,
            exc.upstream_status,
            exc.detail,
            extra={"path": request.url.path},
        )
    elif exc.status_code >= 500:
        logger.error("Request failed: %s", exc, extra={"path": request.url.path})
    else:
        logger.info("Request rejected with %s: %s", exc.status_code, exc.message)

    if isinstance(exc, RateLimitedError):
        return create_error_response(
            request,
            exc.status_code,
            exc.message,
            headers={"Retry-After": str(exc.retry_after)},
            retryAfter=exc.retry_after,
        )
    return create_error_response(request, exc.status_code, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as 400 with the offending fields."""
    details = []
    for error in exc.errors():
        field = error["loc"][-1] if error.get("loc") else "unknown"
        details.append({"field": str(field), "message": error.get("msg", "")})
    return create_error_response(request, status.HTTP_400_BAD_REQUEST, "Invalid request body", details=details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions with error logging."""
    logger.exception(
        "Unhandled exception occurred",
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GrowWiseError, growwise_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
