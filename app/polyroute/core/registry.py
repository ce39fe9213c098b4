"""Authoritative, mutable view of the registered providers.

The registry is the single shared mutable resource of the routing core.
Providers are stored as frozen snapshots; `update_availability` swaps in a new
snapshot under a lock, so readers always see a consistent provider.
"""

import threading
from typing import Iterable, Optional

from app.polyroute.core.logging_config import get_logger
from app.polyroute.core.types import (
    BUILTIN_TASK_TYPES,
    HealthStatus,
    Provider,
    ProviderStatus,
    TaskType,
)

logger = get_logger(__name__)


class ProviderRegistry:
    """Catalog of providers with availability tracking.

    Registration order is retained and used as the final tie-breaker
    everywhere a deterministic ordering is needed.
    """

    def __init__(self, providers: Iterable[Provider] = ()):
        self._lock = threading.Lock()
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            self.register(provider)

    @classmethod
    def from_catalog(cls, entries: Iterable[Provider]) -> "ProviderRegistry":
        registry = cls(entries)
        logger.info("Provider registry loaded", providers=[p.id for p in registry.list_providers()])
        return registry

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        with self._lock:
            return provider_id in self._providers

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, provider: Provider) -> None:
        """Add a provider at startup.

        Raises:
            ValueError: If a provider with the same id is already registered.
        """
        with self._lock:
            if provider.id in self._providers:
                raise ValueError(f"Provider '{provider.id}' is already registered")
            self._providers[provider.id] = provider

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_providers(self) -> list[Provider]:
        with self._lock:
            return list(self._providers.values())

    def get(self, provider_id: str) -> Optional[Provider]:
        with self._lock:
            return self._providers.get(provider_id)

    def get_providers_for_task(self, task_type: str) -> list[Provider]:
        """Return providers eligible for a task, most reliable first.

        Providers declaring ``task_type`` qualify. When none does and the tag
        belongs to the built-in vocabulary, providers declaring ``general``
        qualify instead. Availability is ignored here; the router decides how
        to treat unavailable providers.

        Args:
            task_type: Task tag of the request.

        Returns:
            Providers ordered by reliability (descending), ties in registration
            order. Empty when nothing qualifies.
        """
        providers = self.list_providers()
        matches = [p for p in providers if p.supports(task_type)]
        if not matches and task_type in BUILTIN_TASK_TYPES:
            matches = [p for p in providers if p.supports(TaskType.GENERAL.value)]
        # sorted() is stable, so equal reliabilities keep registration order.
        return sorted(matches, key=lambda p: -p.reliability)

    def get_stats(self) -> list[ProviderStatus]:
        return [ProviderStatus.from_provider(p) for p in self.list_providers()]

    def get_health_status(self) -> HealthStatus:
        providers = self.list_providers()
        available = sum(1 for p in providers if p.is_available)
        total = len(providers)
        if total and available == total:
            status = "healthy"
        elif available:
            status = "degraded"
        else:
            status = "critical"
        return HealthStatus(status=status, available=available, total=total)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_availability(
        self,
        provider_id: str,
        is_available: bool,
        response_time_ms: Optional[float] = None,
    ) -> Optional[Provider]:
        """Record the latest observation of a provider.

        Unknown ids are ignored so a stale caller can never crash the request
        path.

        Args:
            provider_id: Provider to update.
            is_available: New availability flag.
            response_time_ms: Latest observed latency, if measured.

        Returns:
            The new snapshot, or None when the id is unknown.
        """
        update: dict[str, object] = {"is_available": is_available}
        if response_time_ms is not None:
            update["response_time_ms"] = max(0.0, float(response_time_ms))

        with self._lock:
            current = self._providers.get(provider_id)
            if current is None:
                updated = None
            else:
                updated = current.model_copy(update=update)
                self._providers[provider_id] = updated

        if updated is None:
            logger.warning("Availability update for unknown provider ignored", provider=provider_id)
        elif current.is_available != is_available:
            logger.info(
                "Provider availability changed",
                provider=provider_id,
                is_available=is_available,
            )
        return updated
