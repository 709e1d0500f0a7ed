"""HTTP middleware for request ID propagation and access logging.

Every request/response pair carries a correlation id:
- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars so engine and adapter logs carry it
- Injects request_id and total duration into response headers
- Clears context after completion to prevent leaks between requests

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from kagi_relay.core.config import settings
from kagi_relay.core.logging import clear_request_id, hash_identifier, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Generate or propagate a request id and log the completed request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` and
            ``X-Request-Duration-ms`` headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        identity = request.headers.get(settings.app.identity_header)
        logger.info(
            "http.request_completed",
            extra={
                "method": request.method,
                "route": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "identity_hash": hash_identifier(identity) if identity else None,
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
