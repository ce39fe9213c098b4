# app/polyroute/core/types/__init__.py
"""
Public API for Polyroute's type system.

This module exposes the records that callers (HTTP handlers, UI consumers,
metric exporters) exchange with the router core.
"""

# ═══════════════════════════════════════════════════════════════════════════
# 1. BASE MODELS
# ═══════════════════════════════════════════════════════════════════════════
from .base import (
    CanonicalModel,
    Priority,
    PRIORITY_RANK,
    TaskType,
    BUILTIN_TASK_TYPES,
    utc_now,
)

# ═══════════════════════════════════════════════════════════════════════════
# 2. PROVIDERS
# ═══════════════════════════════════════════════════════════════════════════
from .provider import (
    Provider,
    ProviderStatus,
    HealthStatus,
)

# ═══════════════════════════════════════════════════════════════════════════
# 3. ROUTING CONTRACT
# ═══════════════════════════════════════════════════════════════════════════
from .routing import (
    RouteRequest,
    RouteResponse,
    Completion,
)

# ═══════════════════════════════════════════════════════════════════════════
# 4. ATTEMPT LOG & AGGREGATES
# ═══════════════════════════════════════════════════════════════════════════
from .records import (
    ErrorKind,
    AttemptRecord,
    ProviderStatistics,
    ModelHealth,
    FallbackMetrics,
    CostMetrics,
)

__all__ = [
    # Base
    "CanonicalModel",
    "Priority",
    "PRIORITY_RANK",
    "TaskType",
    "BUILTIN_TASK_TYPES",
    "utc_now",

    # Providers
    "Provider",
    "ProviderStatus",
    "HealthStatus",

    # Routing
    "RouteRequest",
    "RouteResponse",
    "Completion",

    # Records
    "ErrorKind",
    "AttemptRecord",
    "ProviderStatistics",
    "ModelHealth",
    "FallbackMetrics",
    "CostMetrics",
]
