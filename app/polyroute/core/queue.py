"""Admission control in front of the router.

`RequestQueue` orders pending requests by priority (high > medium > low) and
arrival (FIFO within a priority), and never lets more than `max_in_flight`
of them reach the router at once. Dispatching happens on a background task,
so requests enqueued within the same event-loop tick are ordered by priority
before the first of them is dispatched.

Only requests that are still queued can be cancelled; once dispatched, a
request runs to completion.
"""

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Optional

from app.polyroute.core.logging_config import get_logger
from app.polyroute.core.router import Router
from app.polyroute.core.types import PRIORITY_RANK, RouteRequest, RouteResponse

logger = get_logger(__name__)

DEFAULT_MAX_IN_FLIGHT = 4


@dataclass(order=True)
class _QueueEntry:
    sort_key: tuple[int, int]
    request: RouteRequest = field(compare=False)
    future: "asyncio.Future[RouteResponse]" = field(compare=False)


class RequestQueue:
    """Priority queue with a bounded number of in-flight requests.

    Args:
        router: Router that serves dispatched requests.
        max_in_flight: Maximum number of requests routed concurrently.
    """

    def __init__(self, router: Router, max_in_flight: int = DEFAULT_MAX_IN_FLIGHT):
        if max_in_flight <= 0:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")
        self.router = router
        self.max_in_flight = max_in_flight
        self._heap: list[_QueueEntry] = []
        self._pending: dict[str, _QueueEntry] = {}
        self._sequence = itertools.count()
        self._running: set[asyncio.Task[None]] = set()
        # Recreated by start() so they bind to the loop the dispatcher runs on.
        self._slots = asyncio.Semaphore(max_in_flight)
        self._wakeup = asyncio.Event()
        self._dispatcher: Optional[asyncio.Task[None]] = None

    async def __aenter__(self) -> "RequestQueue":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._running)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatcher. Must be called from a running event loop."""
        if self._dispatcher is not None and not self._dispatcher.done():
            return
        self._slots = asyncio.Semaphore(self.max_in_flight)
        self._wakeup = asyncio.Event()
        if self._heap:
            self._wakeup.set()
        self._dispatcher = asyncio.create_task(
            self._dispatch_loop(self._slots, self._wakeup), name="request-queue"
        )

    async def stop(self) -> None:
        """Cancel queued requests and wait for in-flight ones to finish."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

        for entry in self._pending.values():
            entry.future.cancel()
        self._pending.clear()
        self._heap.clear()

        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def enqueue(self, request: RouteRequest) -> "asyncio.Future[RouteResponse]":
        """Queue a request and return a future resolved by the router.

        The future resolves with the `RouteResponse` or fails with the
        router's typed error.

        Raises:
            ValueError: If a request with the same id is already queued.
        """
        if request.id in self._pending:
            raise ValueError(f"Request '{request.id}' is already queued")

        self.start()
        future: asyncio.Future[RouteResponse] = asyncio.get_running_loop().create_future()
        # heapq pops the smallest key: negate the rank so high priority wins.
        entry = _QueueEntry(
            sort_key=(-PRIORITY_RANK[request.priority], next(self._sequence)),
            request=request,
            future=future,
        )
        heapq.heappush(self._heap, entry)
        self._pending[request.id] = entry
        self._wakeup.set()
        logger.debug(
            "Request queued",
            request_id=request.id,
            priority=request.priority,
            pending=self.pending,
        )
        return future

    def cancel(self, request_id: str) -> bool:
        """Cancel a request that has not been dispatched yet.

        Returns:
            True if the request was still queued and is now cancelled.
        """
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False
        entry.future.cancel()
        # The heap entry is discarded lazily by the dispatcher.
        logger.info("Queued request cancelled", request_id=request_id)
        return True

    # ------------------------------------------------------------------
    # Dispatching
    # ------------------------------------------------------------------

    def _pop_next(self) -> Optional[_QueueEntry]:
        while self._heap:
            entry = heapq.heappop(self._heap)
            if self._pending.get(entry.request.id) is not entry:
                continue
            del self._pending[entry.request.id]
            if entry.future.done():
                continue
            return entry
        return None

    async def _dispatch_loop(self, slots: asyncio.Semaphore, wakeup: asyncio.Event) -> None:
        while True:
            await slots.acquire()
            entry = self._pop_next()
            while entry is None:
                wakeup.clear()
                await wakeup.wait()
                entry = self._pop_next()

            task = asyncio.create_task(self._serve(entry, slots), name=f"route-{entry.request.id}")
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _serve(self, entry: _QueueEntry, slots: asyncio.Semaphore) -> None:
        try:
            response = await self.router.route(entry.request)
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as exc:
            if not entry.future.done():
                entry.future.set_exception(exc)
        else:
            if not entry.future.done():
                entry.future.set_result(response)
        finally:
            slots.release()
