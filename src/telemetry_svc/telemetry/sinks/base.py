"""Base sink interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from ..events import EventKind, TelemetryEvent


def filter_kinds(
    events: Iterable[TelemetryEvent],
    kinds: Iterable[str | EventKind] | None,
) -> list[TelemetryEvent]:
    """
    Keep only events whose kind is in ``kinds``.

    ``None`` or an empty list keeps everything. Unknown kind names raise
    ``ValueError`` so a typo in sink config fails at startup, not silently.
    """
    if not kinds:
        return list(events)
    wanted = {EventKind(k) for k in kinds}
    return [e for e in events if e.kind in wanted]


class TelemetrySink(ABC):
    """
    Destination for batches of recorded telemetry events.

    The batcher hands every sink whole batches in recording order; a batch
    can mix sessions and event kinds.
    """

    @abstractmethod
    async def send(self, events: list[TelemetryEvent]) -> None:
        """Deliver a batch. A failure drops the batch; there is no retry."""
        ...

    async def start(self) -> None:
        """Open files, sockets, etc. Called once from the app lifespan."""
        pass

    async def stop(self) -> None:
        """Release what ``start`` acquired."""
        pass

    async def health_check(self) -> bool:
        return True
