"""Non-blocking telemetry emitter."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .events import TelemetryEvent


logger = logging.getLogger(__name__)

Consumer = Callable[[TelemetryEvent], Any]


@dataclass
class TelemetryEmitter:
    """
    Hands recorded events to downstream consumers off the hot path.

    ``emit`` only enqueues, so it is safe to use as the manager's dispatch
    callable: a full queue or an emitter that was never started drops the
    event and bumps a counter instead of raising.
    """
    max_queue_size: int = 10000

    # "drop" discards events when the queue is full, "raise" propagates QueueFull
    overflow_policy: str = "drop"

    _queue: asyncio.Queue | None = field(default=None, init=False)
    _consumers: list[Consumer] = field(default_factory=list, init=False)
    _stats: dict[str, int] = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {"emitted": 0, "dropped": 0, "delivered": 0, "errors": 0}

    async def start(self) -> None:
        """Create the queue (call on startup, inside the running loop)."""
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        logger.info(f"Telemetry emitter started (max_queue={self.max_queue_size})")

    async def stop(self) -> None:
        """Deliver whatever is still queued, then stop accepting events."""
        if self._queue:
            while not self._queue.empty():
                await self._deliver(self._queue.get_nowait())
        self._queue = None
        logger.info(f"Telemetry emitter stopped. Stats: {self._stats}")

    def add_consumer(self, consumer: Consumer) -> None:
        """Register a consumer; coroutine functions are awaited."""
        self._consumers.append(consumer)

    def emit(self, event: TelemetryEvent) -> bool:
        """
        Queue an event for delivery (non-blocking).

        Returns True if queued, False if dropped.
        """
        if self._queue is None:
            logger.debug("Telemetry emitter not started, dropping event")
            self._stats["dropped"] += 1
            return False

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            if self.overflow_policy != "drop":
                raise
            return False

        self._stats["emitted"] += 1
        return True

    async def process_loop(self) -> None:
        """Deliver queued events until cancelled. Run as a background task."""
        if self._queue is None:
            raise RuntimeError("Emitter not started")

        logger.info("Telemetry processing loop started")
        queue = self._queue

        while True:
            try:
                event = await queue.get()
            except asyncio.CancelledError:
                logger.info("Telemetry processing loop cancelled")
                break
            await self._deliver(event)
            queue.task_done()

    async def _deliver(self, event: TelemetryEvent) -> None:
        for consumer in self._consumers:
            try:
                result = consumer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Telemetry consumer error: {e}")
                self._stats["errors"] += 1
        self._stats["delivered"] += 1

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize() if self._queue else 0

    @property
    def stats(self) -> dict[str, int]:
        return {
            **self._stats,
            "queue_depth": self.queue_depth,
            "consumers": len(self._consumers),
        }
