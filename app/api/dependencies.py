"""FastAPI dependencies exposing the routing core built in the lifespan.

The core objects are constructed once at startup and stored on `app.state`;
handlers reach them only through these functions, which tests override.
"""

from fastapi import HTTPException, Request, status

from app.polyroute.core.metrics import MetricsLogger
from app.polyroute.core.queue import RequestQueue
from app.polyroute.core.registry import ProviderRegistry


def _state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="System is starting up or dependencies are unavailable",
        )
    return value


def get_registry(request: Request) -> ProviderRegistry:
    return _state_attr(request, "registry")


def get_metrics(request: Request) -> MetricsLogger:
    return _state_attr(request, "metrics")


def get_queue(request: Request) -> RequestQueue:
    return _state_attr(request, "queue")
