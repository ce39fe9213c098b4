"""Defines the attempt log and the aggregates derived from it.

Attempt records form an append-only log: one row per provider invocation,
successful or not. Every statistic below is recomputed from that log on
demand, so the aggregates can never drift from the records they describe.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, model_validator

from .base import CanonicalModel, utc_now


ErrorKind = Literal["timeout", "provider_error", "rejected"]


class AttemptRecord(CanonicalModel):
    """A single immutable log entry for one provider invocation.

    Attributes:
        id: Unique record identifier.
        request_id: Request this attempt belongs to.
        provider: Provider identifier.
        model: Model name of the provider.
        task_type: Task tag of the request.
        timestamp: When the attempt finished (UTC).
        tokens_used: Tokens consumed (0 for failures).
        response_time_ms: Duration of the attempt.
        cost: Cost of the attempt (0 for failures).
        success: Whether the provider answered.
        error: Failure detail, if any.
        error_kind: Failure classification, if any.
        attempt_index: Position of the provider in the candidate list.
        fallback_used: True for every attempt after the first.
        fallback_reason: Error kind of the attempt that forced this fallback.
    """
    id: str = Field(default_factory=lambda: f"log_{uuid.uuid4().hex}")
    request_id: str
    provider: str
    model: str
    task_type: str
    timestamp: datetime = Field(default_factory=utc_now)
    tokens_used: int = Field(default=0, ge=0)
    response_time_ms: float = Field(default=0.0, ge=0.0)
    cost: float = Field(default=0.0, ge=0.0)
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    attempt_index: int = Field(default=0, ge=0)
    fallback_used: bool = False
    fallback_reason: Optional[ErrorKind] = None

    @model_validator(mode='after')
    def validate_outcome(self) -> 'AttemptRecord':
        """Keep the success flag, error detail and fallback flag consistent.

        Raises:
            ValueError: If a failure carries no error kind, a success carries
                one, or ``fallback_used`` disagrees with ``attempt_index``.
        """
        if self.success and self.error_kind is not None:
            raise ValueError("A successful attempt cannot carry an error kind")
        if not self.success and self.error_kind is None:
            raise ValueError("A failed attempt must carry an error kind")
        if self.fallback_used != (self.attempt_index > 0):
            raise ValueError(
                f"fallback_used={self.fallback_used} contradicts "
                f"attempt_index={self.attempt_index}"
            )
        return self


class ProviderStatistics(CanonicalModel):
    """Aggregate view of all attempts for one (model, provider) pair."""
    model: str
    provider: str
    total_calls: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    average_response_time_ms: float = Field(ge=0.0)
    success_rate: float = Field(ge=0.0, le=100.0, description="Percentage of successful attempts")
    total_cost: float = Field(ge=0.0)
    last_used: datetime


class ModelHealth(CanonicalModel):
    """Coarse health label of a (model, provider) pair.

    ``active`` above 80 % success, ``inactive`` above 50 %, ``error`` otherwise.
    """
    model: str
    provider: str
    status: Literal["active", "inactive", "error"]
    success_rate: float = Field(ge=0.0, le=1.0)
    average_response_time_ms: float = Field(ge=0.0)
    total_calls: int = Field(ge=0)
    total_cost: float = Field(ge=0.0)


class FallbackMetrics(CanonicalModel):
    """Attempts partitioned by whether they were fallbacks."""
    total_fallbacks: int = Field(default=0, ge=0)
    fallbacks_by_reason: dict[str, int] = Field(default_factory=dict)
    fallbacks_by_model: dict[str, int] = Field(default_factory=dict)
    avg_response_time_with_fallback: float = 0.0
    avg_response_time_without_fallback: float = 0.0


class CostMetrics(CanonicalModel):
    """Spend totals grouped by UTC day, model and task type."""
    total_cost: float = 0.0
    cost_by_period: dict[str, float] = Field(default_factory=dict)
    cost_by_model: dict[str, float] = Field(default_factory=dict)
    cost_by_task: dict[str, float] = Field(default_factory=dict)
