"""HTTP surface of the routing core.

Routing goes through the request queue so HTTP callers share the same
admission control as in-process callers. Metric endpoints are read-only views
over the attempt log.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import Field

from app.api.dependencies import get_metrics, get_queue, get_registry
from app.polyroute.core.metrics import MAX_LOG_ENTRIES, MetricsLogger
from app.polyroute.core.queue import RequestQueue
from app.polyroute.core.registry import ProviderRegistry
from app.polyroute.core.types import (
    AttemptRecord,
    CanonicalModel,
    CostMetrics,
    FallbackMetrics,
    HealthStatus,
    ModelHealth,
    Priority,
    ProviderStatistics,
    ProviderStatus,
    RouteRequest,
    RouteResponse,
)

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST BODIES
# ═══════════════════════════════════════════════════════════════════════════

class RouteRequestBody(CanonicalModel):
    """Body of ``POST /route``; the request id is assigned by the server."""
    prompt: str = Field(min_length=1)
    task_type: str = Field(default="general", min_length=1)
    priority: Priority = "medium"
    max_latency_ms: Optional[float] = Field(default=None, gt=0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    user_id: Optional[str] = None

    def to_request(self) -> RouteRequest:
        return RouteRequest(**self.model_dump())


class AvailabilityUpdate(CanonicalModel):
    """Body of ``PUT /providers/{provider_id}/availability``."""
    is_available: bool
    response_time_ms: Optional[float] = Field(default=None, ge=0.0)


# ═══════════════════════════════════════════════════════════════════════════
# ROUTING
# ═══════════════════════════════════════════════════════════════════════════

@router.post("/route", response_model=RouteResponse, tags=["routing"])
async def route_request(
    body: RouteRequestBody,
    queue: RequestQueue = Depends(get_queue),
) -> RouteResponse:
    """Route a prompt to the best available provider.

    Routing errors are translated by the exception handlers registered in
    `app.main`: exhausted providers map to 503, an unsupported task type to
    422 and a cancelled request to 409.
    """
    return await queue.enqueue(body.to_request())


# ═══════════════════════════════════════════════════════════════════════════
# PROVIDERS
# ═══════════════════════════════════════════════════════════════════════════

@router.get("/providers/stats", response_model=list[ProviderStatus], tags=["providers"])
async def provider_stats(
    registry: ProviderRegistry = Depends(get_registry),
) -> list[ProviderStatus]:
    return registry.get_stats()


@router.get("/providers/health", response_model=HealthStatus, tags=["providers"])
async def provider_health(
    registry: ProviderRegistry = Depends(get_registry),
) -> HealthStatus:
    return registry.get_health_status()


@router.put(
    "/providers/{provider_id}/availability",
    response_model=ProviderStatus,
    tags=["providers"],
)
async def update_provider_availability(
    provider_id: str,
    body: AvailabilityUpdate,
    registry: ProviderRegistry = Depends(get_registry),
) -> ProviderStatus:
    """Manually override a provider's availability (operator action)."""
    updated = registry.update_availability(provider_id, body.is_available, body.response_time_ms)
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider '{provider_id}'",
        )
    return ProviderStatus.from_provider(updated)


# ═══════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════

@router.get("/metrics/models", response_model=list[ProviderStatistics], tags=["metrics"])
async def model_stats(metrics: MetricsLogger = Depends(get_metrics)) -> list[ProviderStatistics]:
    return metrics.get_model_stats()


@router.get("/metrics/models/health", response_model=list[ModelHealth], tags=["metrics"])
async def model_health(metrics: MetricsLogger = Depends(get_metrics)) -> list[ModelHealth]:
    return metrics.get_model_health()


@router.get("/metrics/fallbacks", response_model=FallbackMetrics, tags=["metrics"])
async def fallback_metrics(metrics: MetricsLogger = Depends(get_metrics)) -> FallbackMetrics:
    return metrics.get_fallback_metrics()


@router.get("/metrics/cost", response_model=CostMetrics, tags=["metrics"])
async def cost_metrics(metrics: MetricsLogger = Depends(get_metrics)) -> CostMetrics:
    return metrics.get_cost_metrics()


@router.get("/metrics/logs", response_model=list[AttemptRecord], tags=["metrics"])
async def recent_logs(
    limit: int = Query(default=50, ge=1, le=MAX_LOG_ENTRIES),
    metrics: MetricsLogger = Depends(get_metrics),
) -> list[AttemptRecord]:
    return metrics.get_recent_logs(limit)


@router.delete("/metrics/logs", status_code=status.HTTP_204_NO_CONTENT, tags=["metrics"])
async def clear_logs(metrics: MetricsLogger = Depends(get_metrics)) -> Response:
    metrics.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
