"""Defines the request/response contract of the router.

A `RouteRequest` is created once by a caller, optionally waits in the queue,
and is consumed exactly once by the router, which produces exactly one
`RouteResponse` or raises a typed routing error.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CanonicalModel, Priority, utc_now


class RouteRequest(CanonicalModel):
    """A unit of work submitted by a caller.

    Attributes:
        id: Unique request identifier, generated at creation.
        prompt: Opaque content forwarded to the provider.
        task_type: Task tag used to select candidate providers.
        priority: Scheduling and ranking hint.
        max_latency_ms: Optional deadline hint; caps every attempt's timeout.
        max_tokens: Optional completion token ceiling.
        temperature: Optional sampling temperature.
        user_id: Optional caller identity, forwarded for attribution only.
        created_at: Submission time (UTC).

    Example:
        >>> request = RouteRequest(prompt="Refactor this loop", task_type="coding")
        >>> request.priority
        'medium'
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prompt: str = Field(min_length=1)
    task_type: str = Field(default="general", min_length=1)
    priority: Priority = "medium"
    max_latency_ms: Optional[float] = Field(default=None, gt=0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Completion(CanonicalModel):
    """What a single successful provider invocation returns."""
    content: str
    tokens_used: int = Field(ge=0)


class RouteResponse(CanonicalModel):
    """The result of successfully routing a request.

    Attributes:
        request_id: Identifier of the originating request.
        content: Completion text returned by the provider.
        provider: Identifier of the provider that produced the content.
        model: Model name reported for that provider.
        tokens_used: Tokens consumed by the successful attempt.
        cost: ``tokens_used * cost_per_token``, rounded half-up to 8 places.
        response_time_ms: Wall-clock time of the whole routing call.
        fallback_used: True iff the first candidate was not the one that answered.
        from_cache: Reserved; always False.
        attempts: Number of providers tried, including the successful one.
    """
    request_id: str
    content: str
    provider: str
    model: str
    tokens_used: int = Field(ge=0)
    cost: float = Field(ge=0.0)
    response_time_ms: float = Field(ge=0.0)
    fallback_used: bool = False
    from_cache: bool = False
    attempts: int = Field(default=1, ge=1)
