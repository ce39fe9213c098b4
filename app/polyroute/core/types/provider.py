"""Defines provider snapshots and the read-only views derived from them.

A provider is a backend able to produce completions. The registry owns the
authoritative state; everything here is an immutable snapshot of it.
"""

from typing import Literal

from pydantic import Field, field_validator

from .base import CanonicalModel


class Provider(CanonicalModel):
    """An immutable snapshot of one registered backend.

    Only ``is_available`` and ``response_time_ms`` change during normal
    operation, and only through ``ProviderRegistry.update_availability``,
    which swaps in a new snapshot.

    Attributes:
        id: Stable unique identifier.
        name: Human-readable display name.
        vendor: Credential family used to authenticate (``openai``, ``groq``...).
        model: Model name sent to the backend.
        endpoint: OpenAI-compatible chat completions URL.
        task_types: Task tags this provider declares support for.
        reliability: Prior belief of success, between 0.0 and 1.0.
        is_available: Whether the last observation succeeded.
        response_time_ms: Last observed latency in milliseconds.
        cost_per_token: Price of a single token.
        max_tokens: Completion token ceiling passed to the backend.

    Example:
        >>> provider = Provider(
        ...     id="groq",
        ...     name="Groq",
        ...     vendor="groq",
        ...     model="mixtral-8x7b-32768",
        ...     endpoint="https://api.groq.com/openai/v1/chat/completions",
        ...     task_types=("general",),
        ...     reliability=0.9,
        ...     cost_per_token=0.0000005,
        ... )
    """
    id: str = Field(min_length=1, description="Stable unique identifier")
    name: str = Field(min_length=1)
    vendor: str = Field(default="openai", min_length=1)
    model: str = Field(min_length=1)
    endpoint: str = ""
    task_types: tuple[str, ...] = Field(default=("general",))
    reliability: float = Field(ge=0.0, le=1.0)
    is_available: bool = True
    response_time_ms: float = Field(default=0.0, ge=0.0)
    cost_per_token: float = Field(ge=0.0)
    max_tokens: int = Field(default=4096, gt=0)

    @field_validator("task_types")
    @classmethod
    def validate_task_types(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Normalize tags and reject an empty declaration."""
        tags = tuple(dict.fromkeys(tag.strip() for tag in v if tag.strip()))
        if not tags:
            raise ValueError("A provider must declare at least one task type")
        return tags

    def supports(self, task_type: str) -> bool:
        return task_type in self.task_types


class ProviderStatus(CanonicalModel):
    """Observability view of a provider, safe to expose to UI consumers."""
    id: str
    name: str
    is_available: bool
    reliability: float
    response_time_ms: float
    cost_per_token: float

    @classmethod
    def from_provider(cls, provider: Provider) -> "ProviderStatus":
        return cls(
            id=provider.id,
            name=provider.name,
            is_available=provider.is_available,
            reliability=provider.reliability,
            response_time_ms=provider.response_time_ms,
            cost_per_token=provider.cost_per_token,
        )


class HealthStatus(CanonicalModel):
    """Overall availability of the registered providers.

    ``healthy`` when every provider is available, ``critical`` when none is,
    ``degraded`` otherwise. An empty registry is ``critical``.
    """
    status: Literal["healthy", "degraded", "critical"]
    available: int = Field(ge=0)
    total: int = Field(ge=0)
