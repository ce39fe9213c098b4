"""HTTP middleware for request correlation and access logging.

Bind a correlation id to the structlog context for the whole request, echo it
back to the client, and report how long the request took.
"""

import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.polyroute.core.logging_config import bind_contextvars, clear_contextvars, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time-Ms"


class RequestCorrelationMiddleware(BaseHTTPMiddleware):
    """Manage request correlation IDs and per-request timing.

    Every log entry emitted while a request is handled, including router and
    metrics logs, carries the bound ``request_id``.
    """

    async def dispatch(self, request: Request, call_next):
        """Process the request and manage the correlation context lifecycle.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler in the chain.

        Returns:
            The HTTP response with `X-Request-ID` and `X-Process-Time-Ms` set.
        """
        # Context may persist across tasks in async servers.
        clear_contextvars()

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}"
        logger.debug(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            elapsed_ms=round(elapsed_ms, 2),
        )
        return response
