"""Attempt log and the cost/latency aggregates derived from it.

`MetricsLogger` keeps the most recent `MAX_LOG_ENTRIES` attempt records in a
bounded in-memory log and computes every statistic on demand from that log.
An optional `AttemptSink` receives a copy of each record through a bounded
queue drained by a background task, so a slow sink can never stall routing;
under extreme load entries are dropped for the sink instead of blocking.

Logging must never break the request path: `log_attempt` does not raise.
"""

import asyncio
import threading
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from app.polyroute.core.errors import LoggingFailure
from app.polyroute.core.logging_config import get_logger
from app.polyroute.core.pricing import round_cost
from app.polyroute.core.types import (
    AttemptRecord,
    CostMetrics,
    FallbackMetrics,
    ModelHealth,
    ProviderStatistics,
)

logger = get_logger(__name__)

# Retention bound of the in-memory log. Oldest entries are evicted first.
MAX_LOG_ENTRIES = 1000

DEFAULT_SINK_QUEUE_SIZE = 1000


@runtime_checkable
class AttemptSink(Protocol):
    """Durable destination for attempt records (database, log pipeline...)."""

    async def write(self, record: AttemptRecord) -> None:
        ...


class StructlogSink:
    """Emit every attempt record as one structured log event."""

    def __init__(self, event: str = "llm_attempt"):
        self._event = event
        self._logger = get_logger("polyroute.attempts")

    async def write(self, record: AttemptRecord) -> None:
        self._logger.info(self._event, **record.model_dump(mode="json"))


@dataclass
class _Accumulator:
    model: str
    provider: str
    calls: int = 0
    tokens: int = 0
    average_response_time_ms: float = 0.0
    successes: int = 0
    cost: float = 0.0
    last_used: Optional[datetime] = None

    def add(self, record: AttemptRecord) -> None:
        self.calls += 1
        self.tokens += record.tokens_used
        # Running mean: avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n
        self.average_response_time_ms += (
            record.response_time_ms - self.average_response_time_ms
        ) / self.calls
        if record.success:
            self.successes += 1
        self.cost += record.cost
        if self.last_used is None or record.timestamp > self.last_used:
            self.last_used = record.timestamp


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsLogger:
    """Bounded attempt log with on-demand aggregation.

    Writes and reads share one lock; readers work on a snapshot, so
    aggregates never observe a half-applied append.
    """

    def __init__(
        self,
        sink: Optional[AttemptSink] = None,
        sink_queue_size: int = DEFAULT_SINK_QUEUE_SIZE,
    ):
        self._lock = threading.Lock()
        self._records: deque[AttemptRecord] = deque(maxlen=MAX_LOG_ENTRIES)
        self._sink = sink
        self._sink_queue_size = sink_queue_size
        self._sink_queue: Optional[asyncio.Queue[AttemptRecord]] = None
        self._sink_task: Optional[asyncio.Task[None]] = None
        self.dropped = 0

    # ------------------------------------------------------------------
    # Background sink lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start forwarding records to the sink, if one is configured."""
        if self._sink is None or self._sink_task is not None:
            return
        self._sink_queue = asyncio.Queue(maxsize=self._sink_queue_size)
        self._sink_task = asyncio.create_task(
            self._drain(self._sink_queue, self._sink), name="metrics-sink"
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """Flush pending records to the sink, then stop the background task."""
        if self._sink_task is None or self._sink_queue is None:
            return
        try:
            await asyncio.wait_for(self._sink_queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Metrics sink did not drain before shutdown",
                pending=self._sink_queue.qsize(),
            )
        self._sink_task.cancel()
        try:
            await self._sink_task
        except asyncio.CancelledError:
            pass
        self._sink_task = None
        self._sink_queue = None

    async def _drain(self, queue: "asyncio.Queue[AttemptRecord]", sink: AttemptSink) -> None:
        while True:
            record = await queue.get()
            try:
                await sink.write(record)
            except Exception as exc:
                logger.warning("Metrics sink write failed", record_id=record.id, error=str(exc))
            finally:
                queue.task_done()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def log_attempt(self, record: AttemptRecord) -> None:
        """Append an attempt record. Never raises.

        Must be called from the event loop thread when a sink is running.
        """
        try:
            self._append(record)
        except Exception as exc:
            self._report(LoggingFailure("Attempt record dropped", cause=exc), record)
            return

        if self._sink_queue is not None:
            try:
                self._sink_queue.put_nowait(record)
            except asyncio.QueueFull:
                self._report(LoggingFailure("Metrics sink queue is full"), record)

    def _append(self, record: AttemptRecord) -> None:
        if not isinstance(record, AttemptRecord):
            raise TypeError(f"Expected AttemptRecord, got {type(record).__name__}")
        with self._lock:
            self._records.append(record)

    def _report(self, failure: LoggingFailure, record: object) -> None:
        self.dropped += 1
        logger.warning(
            str(failure),
            record_id=getattr(record, "id", None),
            cause=repr(failure.cause) if failure.cause else None,
            dropped=self.dropped,
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[AttemptRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get_recent_logs(self, limit: int = 50) -> list[AttemptRecord]:
        """Return up to ``limit`` records, most recent first."""
        if limit <= 0:
            return []
        records = self._snapshot()
        return records[::-1][:limit]

    def get_model_stats(self) -> list[ProviderStatistics]:
        """Aggregate the log per (model, provider), in first-seen order."""
        groups: dict[tuple[str, str], _Accumulator] = {}
        for record in self._snapshot():
            key = (record.model, record.provider)
            if key not in groups:
                groups[key] = _Accumulator(model=record.model, provider=record.provider)
            groups[key].add(record)

        return [
            ProviderStatistics(
                model=acc.model,
                provider=acc.provider,
                total_calls=acc.calls,
                total_tokens=acc.tokens,
                average_response_time_ms=acc.average_response_time_ms,
                success_rate=acc.successes / acc.calls * 100,
                total_cost=round_cost(acc.cost),
                last_used=acc.last_used,
            )
            for acc in groups.values()
        ]

    def get_model_health(self) -> list[ModelHealth]:
        health = []
        for stats in self.get_model_stats():
            if stats.success_rate > 80:
                status = "active"
            elif stats.success_rate > 50:
                status = "inactive"
            else:
                status = "error"
            health.append(
                ModelHealth(
                    model=stats.model,
                    provider=stats.provider,
                    status=status,
                    success_rate=stats.success_rate / 100,
                    average_response_time_ms=stats.average_response_time_ms,
                    total_calls=stats.total_calls,
                    total_cost=stats.total_cost,
                )
            )
        return health

    def get_fallback_metrics(self) -> FallbackMetrics:
        """Partition the log by the fallback flag.

        ``total_fallbacks`` counts attempts made after an earlier candidate
        failed, whatever their own outcome.
        """
        with_fallback: list[AttemptRecord] = []
        without_fallback: list[AttemptRecord] = []
        for record in self._snapshot():
            (with_fallback if record.fallback_used else without_fallback).append(record)

        by_reason = Counter(r.fallback_reason or "unknown" for r in with_fallback)
        by_model = Counter(r.model for r in with_fallback)
        return FallbackMetrics(
            total_fallbacks=len(with_fallback),
            fallbacks_by_reason=dict(by_reason),
            fallbacks_by_model=dict(by_model),
            avg_response_time_with_fallback=_mean([r.response_time_ms for r in with_fallback]),
            avg_response_time_without_fallback=_mean([r.response_time_ms for r in without_fallback]),
        )

    def get_cost_metrics(self) -> CostMetrics:
        total = 0.0
        by_period: dict[str, float] = {}
        by_model: dict[str, float] = {}
        by_task: dict[str, float] = {}
        for record in self._snapshot():
            period = record.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d")
            total += record.cost
            by_period[period] = by_period.get(period, 0.0) + record.cost
            by_model[record.model] = by_model.get(record.model, 0.0) + record.cost
            by_task[record.task_type] = by_task.get(record.task_type, 0.0) + record.cost

        return CostMetrics(
            total_cost=round_cost(total),
            cost_by_period={k: round_cost(v) for k, v in by_period.items()},
            cost_by_model={k: round_cost(v) for k, v in by_model.items()},
            cost_by_task={k: round_cost(v) for k, v in by_task.items()},
        )
