"""ZeroMQ sink for streaming telemetry to downstream consumers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from ..events import TelemetryEvent
from .base import TelemetrySink


logger = logging.getLogger(__name__)


@dataclass
class ZmqSink(TelemetrySink):
    """
    Sink that publishes events over ZeroMQ.

    Messages are ``"<topic>.<kind> <json>"`` so subscribers can filter on a
    single event kind (e.g. ``telemetry.error``) or on the bare topic.

    Config:
        endpoint: ZMQ endpoint (e.g., "tcp://*:5556")
        topic: Topic prefix for messages (default: "telemetry")
        socket_type: push | pub (default: pub)
        high_water_mark: Max queued messages before dropping
    """
    endpoint: str = "tcp://*:5556"
    topic: str = "telemetry"
    socket_type: str = "pub"  # pub | push
    high_water_mark: int = 10000

    _context: Any = field(default=None, init=False)
    _socket: Any = field(default=None, init=False)

    async def start(self) -> None:
        import zmq
        import zmq.asyncio

        self._context = zmq.asyncio.Context()
        kind = zmq.PUB if self.socket_type == "pub" else zmq.PUSH
        self._socket = self._context.socket(kind)
        self._socket.set_hwm(self.high_water_mark)
        self._socket.bind(self.endpoint)

        logger.info(f"ZMQ sink started on {self.endpoint} ({self.socket_type})")

    async def stop(self) -> None:
        if self._socket:
            self._socket.close()
            self._socket = None
        if self._context:
            self._context.term()
            self._context = None

        logger.info("ZMQ sink stopped")

    def format_message(self, event: TelemetryEvent) -> str:
        return f"{self.topic}.{event.kind.value} {json.dumps(event.to_dict(), default=str)}"

    async def send(self, events: list[TelemetryEvent]) -> None:
        if not self._socket:
            logger.warning("ZMQ sink not started, dropping batch")
            return

        for event in events:
            try:
                await self._socket.send_string(self.format_message(event))
            except Exception as e:
                logger.error(f"ZMQ send error: {e}")

    async def health_check(self) -> bool:
        return self._socket is not None
