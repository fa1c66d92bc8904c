"""Middleware for trace_id and request_id logging."""
from __future__ import annotations

import time
from uuid import UUID, uuid4

import structlog
from aiohttp import web

TRACE_ID_HEADER = "X-Trace-Id"
REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger(__name__)

# Headers that carry credentials and must never reach the logs
SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "x-auth-token",
}


def is_valid_uuid(value: str) -> bool:
    """Check if string is a valid UUID."""
    try:
        UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def get_safe_headers(headers) -> dict:
    """Get headers dict with sensitive headers filtered out."""
    headers_dict = dict(headers) if hasattr(headers, "items") else headers
    return {
        key: value
        for key, value in headers_dict.items()
        if key.lower() not in SENSITIVE_HEADERS
    }


def create_trace_middleware(service_name: str):
    """Create trace middleware with specified service name."""
    @web.middleware
    async def trace_middleware(request: web.Request, handler):
        """Bind trace_id/request_id to the log context and log the request outcome."""
        start_time = time.time()

        trace_id = request.headers.get(TRACE_ID_HEADER)
        if not trace_id or not is_valid_uuid(trace_id):
            trace_id = str(uuid4())

        request_id = request.headers.get(REQUEST_ID_HEADER)
        if not request_id or not is_valid_uuid(request_id):
            request_id = str(uuid4())

        request["trace_id"] = trace_id
        request["request_id"] = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            request_id=request_id,
            service=service_name,
            method=request.method,
            path=request.path,
        )

        logger.info(
            "Incoming request",
            url=str(request.url),
            query_string=request.query_string or None,
            remote=request.remote,
            headers=get_safe_headers(request.headers),
        )

        try:
            response = await handler(request)

            duration_ms = (time.time() - start_time) * 1000
            if response.status >= 400:
                logger.warning(
                    "Request completed with error status",
                    status_code=response.status,
                    duration_ms=round(duration_ms, 2),
                )
            else:
                logger.info(
                    "Request completed",
                    status_code=response.status,
                    duration_ms=round(duration_ms, 2),
                )

            response.headers[TRACE_ID_HEADER] = trace_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except web.HTTPException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "Request failed with HTTP exception",
                status_code=e.status_code,
                duration_ms=round(duration_ms, 2),
                error=e.text,
                error_type=type(e).__name__,
            )
            raise
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Request failed with exception",
                duration_ms=round(duration_ms, 2),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()

    return trace_middleware
