"""FastAPI application entry point for the Polyroute service.

Define the FastAPI application instance, register middleware, routes and
exception handlers, and build the routing core inside the lifespan context
manager. The core objects are created once per process, attached to
`app.state`, and handed to route handlers through dependencies.
"""

import logging.config
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.api.middleware import RequestCorrelationMiddleware
from app.api.routes import router as api_router
from app.config import Settings, get_settings
from app.polyroute.core.catalog import load_catalog
from app.polyroute.core.errors import (
    ExhaustedError,
    NoCandidatesError,
    RequestCancelledError,
)
from app.polyroute.core.invokers import HttpProviderInvoker, ProviderInvoker
from app.polyroute.core.logging_config import (
    configure_structlog_wrapper,
    get_logger,
    get_logging_config,
)
from app.polyroute.core.metrics import MetricsLogger, StructlogSink
from app.polyroute.core.queue import RequestQueue
from app.polyroute.core.ratelimit import SlidingWindowRateLimiter
from app.polyroute.core.registry import ProviderRegistry
from app.polyroute.core.router import Router


@dataclass
class Services:
    """The routing core wired together for one process."""
    registry: ProviderRegistry
    metrics: MetricsLogger
    router: Router
    queue: RequestQueue
    invoker: ProviderInvoker

    def attach(self, app: FastAPI) -> None:
        app.state.registry = self.registry
        app.state.metrics = self.metrics
        app.state.router = self.router
        app.state.queue = self.queue
        app.state.invoker = self.invoker


def build_services(
    settings: Settings,
    invoker: Optional[ProviderInvoker] = None,
    metrics: Optional[MetricsLogger] = None,
) -> Services:
    """Construct the registry, metrics logger, router and queue from settings.

    Args:
        settings: Application settings.
        invoker: Provider invocation capability. Defaults to the HTTP invoker
            authenticated with the configured vendor keys.
        metrics: Attempt log. Defaults to one forwarding to `StructlogSink`.

    Raises:
        ValueError: If the configured catalog file is missing.
    """
    registry = ProviderRegistry.from_catalog(load_catalog(settings.PROVIDER_CATALOG_FILE))
    if metrics is None:
        metrics = MetricsLogger(
            sink=StructlogSink(),
            sink_queue_size=settings.METRICS_SINK_QUEUE_SIZE,
        )
    if invoker is None:
        invoker = HttpProviderInvoker(settings.api_keys)

    rate_limiter = None
    if settings.PROVIDER_RATE_LIMIT_PER_MINUTE is not None:
        rate_limiter = SlidingWindowRateLimiter(settings.PROVIDER_RATE_LIMIT_PER_MINUTE)

    router = Router(
        registry,
        metrics,
        invoker,
        attempt_timeout=settings.ROUTER_ATTEMPT_TIMEOUT_SECONDS,
        rate_limiter=rate_limiter,
    )
    queue = RequestQueue(router, max_in_flight=settings.QUEUE_MAX_IN_FLIGHT)
    return Services(registry=registry, metrics=metrics, router=router, queue=queue, invoker=invoker)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle events.

    Configure logging, build the routing core and start its background tasks
    on startup; drain the queue, flush the metrics sink and close the HTTP
    client on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control returns to the application after startup completes.

    Raises:
        Exception: Propagate critical errors when resource initialization fails.
    """
    # === STARTUP SEQUENCE ===

    settings = get_settings()

    logging.config.dictConfig(get_logging_config(settings))
    configure_structlog_wrapper(settings)

    logger = get_logger("lifespan")
    logger.info("🚀 Polyroute startup initiated", env=settings.ENVIRONMENT)

    try:
        services = build_services(settings)
        services.attach(app)
        await services.metrics.start()
        services.queue.start()
        app.state.is_ready = True
        logger.info(
            "Routing core initialized",
            providers=len(services.registry),
            max_in_flight=settings.QUEUE_MAX_IN_FLIGHT,
        )
    except Exception as e:
        logger.critical("Failed to initialize routing core", error=str(e))
        app.state.is_ready = False
        raise

    yield

    # === SHUTDOWN SEQUENCE ===

    logger.info("🛑 Polyroute shutdown initiated")
    app.state.is_ready = False
    await services.queue.stop()
    await services.metrics.stop()
    if isinstance(services.invoker, HttpProviderInvoker):
        await services.invoker.aclose()
    logger.info("Resources released")


app = FastAPI(
    title=os.getenv("PROJECT_NAME", "Polyroute"),
    version=os.getenv("VERSION", "0.1.0"),
    description="Multi-provider LLM request router with fallback and cost accounting",
    lifespan=lifespan,
)

app.add_middleware(RequestCorrelationMiddleware)
app.include_router(api_router)


# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================


@app.exception_handler(ExhaustedError)
async def exhausted_handler(request: Request, exc: ExhaustedError):
    """Every provider failed: the caller should retry later."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": str(exc),
            "requestId": exc.request_id,
            "failures": [f.to_dict() for f in exc.failures],
        },
    )


@app.exception_handler(NoCandidatesError)
async def no_candidates_handler(request: Request, exc: NoCandidatesError):
    """No provider supports the task type: the request itself is misconfigured."""
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "taskType": exc.task_type},
    )


@app.exception_handler(RequestCancelledError)
async def cancelled_handler(request: Request, exc: RequestCancelledError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "requestId": exc.request_id},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions globally.

    Log the full error with structured context (including request_id) and
    return a generic 500 JSON response to avoid leaking internal details.
    """
    logger = get_logger("exception_handler")
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal Server Error",
            "request_id": request.headers.get("X-Request-ID"),
        },
    )


# ==============================================================================
# HEALTH PROBES
# ==============================================================================


@app.get("/health/live", status_code=status.HTTP_200_OK)
async def liveness_probe() -> dict[str, str]:
    """Return liveness status for container orchestration.

    This probe does not verify providers; use ``/providers/health`` for that.
    """
    return {"status": "alive"}


@app.get("/health/ready", status_code=status.HTTP_200_OK)
async def readiness_probe(request: Request) -> dict[str, str]:
    """Return readiness status for traffic routing decisions.

    Raises:
        HTTPException: 503 Service Unavailable until the routing core is built.
    """
    if not getattr(request.app.state, "is_ready", False):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="System is starting up or dependencies are unavailable"
        )

    return {"status": "ready"}


@app.get("/health", include_in_schema=False)
async def legacy_health() -> dict[str, str]:
    """Return health status for backward compatibility.

    .. deprecated::
        Use ``/health/live`` or ``/health/ready`` instead.
    """
    return {"status": "ok", "note": "deprecated: use /health/live or /health/ready"}
