# slotbook/core/middleware.py
"""Custom middleware for request handling"""
import uuid
import time
import logging
from starlette.requests import Request

from slotbook.utils.my_logging import correlation_id_var

logger = logging.getLogger(__name__)


async def correlation_id_middleware(request: Request, call_next):
    """Add correlation ID to all requests and to every log line they produce"""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    token = correlation_id_var.set(correlation_id)

    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)

    response.headers["X-Correlation-ID"] = correlation_id
    return response


async def request_logging_middleware(request: Request, call_next):
    """Log every request with the tenant it was made for"""
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    # Read after call_next: the correlation middleware runs inside this one
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    business_id = request.query_params.get("business_id")

    log = logger.error if response.status_code >= 500 else logger.info
    log(
        f"{request.method} {request.url.path} -> {response.status_code}"
        + (f" (business {business_id})" if business_id else ""),
        extra={
            "correlation_id": correlation_id,
            "business_id": business_id,
            "method": request.method,
            "url": str(request.url),
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }
    )

    return response
