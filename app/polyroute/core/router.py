"""Provider selection policy, fallback and attempt bookkeeping.

The router turns one `RouteRequest` into exactly one `RouteResponse` or one
typed failure:

    1. Candidate selection: eligible providers from the registry that are
       available and not rate-limited, ranked by `rank_candidates`. Only when
       none qualifies are all eligible providers ranked and force-tried as a
       last resort.
    2. Attempting: candidates are invoked strictly one after another, each at
       most once, each bounded by a per-attempt timeout. Every attempt updates
       the registry and appends an `AttemptRecord` to the metrics logger.
    3. The first success is returned; if every candidate fails the router
       raises `ExhaustedError` with the per-provider failures attached.
"""

import asyncio
import time
from typing import Callable, Optional, Sequence

from app.polyroute.core.errors import (
    AttemptFailure,
    ExhaustedError,
    NoCandidatesError,
    ProviderError,
    RequestCancelledError,
)
from app.polyroute.core.invokers import ProviderInvoker
from app.polyroute.core.logging_config import bound_contextvars, get_logger
from app.polyroute.core.metrics import MetricsLogger
from app.polyroute.core.pricing import compute_cost
from app.polyroute.core.ratelimit import SlidingWindowRateLimiter
from app.polyroute.core.registry import ProviderRegistry
from app.polyroute.core.types import (
    AttemptRecord,
    Completion,
    ErrorKind,
    Priority,
    Provider,
    RouteRequest,
    RouteResponse,
)

logger = get_logger(__name__)

DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 30.0


def rank_candidates(providers: Sequence[Provider], priority: Priority) -> list[Provider]:
    """Order providers for one request.

    Reliability descending first. Among equally reliable providers, ``high``
    priority prefers the lowest observed response time and ``low`` priority
    the lowest cost per token; ``medium`` adds no secondary key. Remaining
    ties keep the input order (the sort is stable).
    """
    if priority == "high":
        key = lambda p: (-p.reliability, p.response_time_ms)
    elif priority == "low":
        key = lambda p: (-p.reliability, p.cost_per_token)
    else:
        key = lambda p: (-p.reliability,)
    return sorted(providers, key=key)


class Router:
    """Route requests across interchangeable providers with fallback.

    Args:
        registry: Provider catalog and availability state.
        metrics: Attempt log receiving one record per invocation.
        invoker: Performs the actual backend call.
        attempt_timeout: Upper bound, in seconds, for a single attempt.
        rate_limiter: Optional per-provider dispatch limiter.
        clock: Monotonic time source in seconds, used for latency.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        metrics: MetricsLogger,
        invoker: ProviderInvoker,
        *,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be positive, got {attempt_timeout}")
        self.registry = registry
        self.metrics = metrics
        self.invoker = invoker
        self.attempt_timeout = attempt_timeout
        self.rate_limiter = rate_limiter
        self._clock = clock

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _is_usable(self, provider: Provider) -> bool:
        if not provider.is_available:
            return False
        if self.rate_limiter is not None and self.rate_limiter.is_limited(provider.id):
            return False
        return True

    def select_candidates(self, request: RouteRequest) -> list[Provider]:
        """Compute the ordered candidate list for a request.

        Raises:
            NoCandidatesError: If no provider declares the task type.
        """
        eligible = self.registry.get_providers_for_task(request.task_type)
        if not eligible:
            raise NoCandidatesError(request.task_type)
        usable = [p for p in eligible if self._is_usable(p)]
        # Unavailable or rate-limited providers are tried only when nothing else is left.
        return rank_candidates(usable or eligible, request.priority)

    def _timeout_for(self, request: RouteRequest) -> float:
        if request.max_latency_ms is None:
            return self.attempt_timeout
        return min(self.attempt_timeout, request.max_latency_ms / 1000.0)

    # ------------------------------------------------------------------
    # Attempting
    # ------------------------------------------------------------------

    async def _invoke(self, provider: Provider, request: RouteRequest, timeout: float) -> Completion:
        """Run one bounded attempt, normalizing every failure to ProviderError."""
        try:
            completion = await asyncio.wait_for(
                self.invoker.invoke(provider, request), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise ProviderError(provider.id, f"timed out after {timeout:.3f}s", kind="timeout")
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(provider.id, f"{type(exc).__name__}: {exc}") from exc

        if not isinstance(completion, Completion):
            raise ProviderError(
                provider.id, f"malformed completion of type {type(completion).__name__}"
            )
        return completion

    async def route(
        self,
        request: RouteRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RouteResponse:
        """Route one request to the first provider that answers.

        Args:
            request: The request to serve.
            cancel_event: Optional cancellation signal, checked before each
                attempt. An attempt already running is not interrupted.

        Raises:
            NoCandidatesError: No provider declares the task type.
            ExhaustedError: Every candidate failed.
            RequestCancelledError: ``cancel_event`` was set before an attempt.
        """
        with bound_contextvars(route_request_id=request.id):
            return await self._route(request, cancel_event)

    async def _route(
        self,
        request: RouteRequest,
        cancel_event: Optional[asyncio.Event],
    ) -> RouteResponse:
        started = self._clock()
        candidates = self.select_candidates(request)
        timeout = self._timeout_for(request)
        logger.debug(
            "Candidates selected",
            task_type=request.task_type,
            priority=request.priority,
            candidates=[p.id for p in candidates],
        )

        failures: list[AttemptFailure] = []
        previous_kind: Optional[ErrorKind] = None

        for index, provider in enumerate(candidates):
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(request.id, attempts=index)

            if self.rate_limiter is not None:
                self.rate_limiter.record(provider.id)

            attempt_started = self._clock()
            try:
                completion = await self._invoke(provider, request, timeout)
            except ProviderError as exc:
                elapsed_ms = (self._clock() - attempt_started) * 1000
                self.registry.update_availability(provider.id, False)
                self.metrics.log_attempt(
                    AttemptRecord(
                        request_id=request.id,
                        provider=provider.id,
                        model=provider.model,
                        task_type=request.task_type,
                        response_time_ms=elapsed_ms,
                        success=False,
                        error=exc.message,
                        error_kind=exc.kind,
                        attempt_index=index,
                        fallback_used=index > 0,
                        fallback_reason=previous_kind,
                    )
                )
                failures.append(AttemptFailure(provider.id, exc.kind, exc.message))
                previous_kind = exc.kind
                logger.warning(
                    "Provider attempt failed",
                    provider=provider.id,
                    kind=exc.kind,
                    error=exc.message,
                    remaining=len(candidates) - index - 1,
                )
                continue

            elapsed_ms = (self._clock() - attempt_started) * 1000
            cost = compute_cost(completion.tokens_used, provider.cost_per_token)
            self.registry.update_availability(provider.id, True, elapsed_ms)
            self.metrics.log_attempt(
                AttemptRecord(
                    request_id=request.id,
                    provider=provider.id,
                    model=provider.model,
                    task_type=request.task_type,
                    tokens_used=completion.tokens_used,
                    response_time_ms=elapsed_ms,
                    cost=cost,
                    success=True,
                    attempt_index=index,
                    fallback_used=index > 0,
                    fallback_reason=previous_kind,
                )
            )
            response = RouteResponse(
                request_id=request.id,
                content=completion.content,
                provider=provider.id,
                model=provider.model,
                tokens_used=completion.tokens_used,
                cost=cost,
                response_time_ms=(self._clock() - started) * 1000,
                fallback_used=index > 0,
                attempts=index + 1,
            )
            logger.info(
                "Request routed",
                provider=provider.id,
                tokens_used=response.tokens_used,
                cost=response.cost,
                fallback_used=response.fallback_used,
                attempts=response.attempts,
            )
            return response

        logger.error(
            "All providers failed",
            task_type=request.task_type,
            failures=[f.to_dict() for f in failures],
        )
        raise ExhaustedError(request.id, failures)
