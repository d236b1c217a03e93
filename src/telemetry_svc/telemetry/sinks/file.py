"""File-based sinks for telemetry (JSON Lines)."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO

from ..events import TelemetryEvent
from .base import TelemetrySink


logger = logging.getLogger(__name__)


def _to_line(event: TelemetryEvent) -> str:
    return json.dumps(event.to_dict(), default=str) + "\n"


@dataclass
class FileSink(TelemetrySink):
    """
    Sink that appends events to a single JSONL file.

    Each event is one JSON object per line, the same shape as the
    ``events`` list of a JSON export.
    """
    path: str
    encoding: str = "utf-8"

    _file: IO[str] | None = field(default=None, init=False)

    async def start(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding=self.encoding)
        logger.info(f"File sink writing to {self.path}")

    async def stop(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    async def send(self, events: list[TelemetryEvent]) -> None:
        if not self._file:
            await self.start()

        self._file.writelines(_to_line(e) for e in events)
        self._file.flush()


@dataclass
class RotatingFileSink(TelemetrySink):
    """
    Sink that writes events to rotating JSONL files.

    A new file is opened when the strftime pattern yields a new name or the
    current file grows past ``max_bytes``.
    """
    # Path pattern (can include strftime codes like %Y%m%d)
    path_pattern: str = "events-%Y%m%d-%H.jsonl"

    # Base directory
    directory: str = "./telemetry-data"

    # Max file size in bytes (0 = no size limit)
    max_bytes: int = 50 * 1024 * 1024

    encoding: str = "utf-8"

    _current_path: str = field(default="", init=False)
    _current_file: IO[str] | None = field(default=None, init=False)
    _current_size: int = field(default=0, init=False)

    async def start(self) -> None:
        Path(self.directory).mkdir(parents=True, exist_ok=True)

    async def stop(self) -> None:
        if self._current_file:
            self._current_file.close()
            self._current_file = None

    async def send(self, events: list[TelemetryEvent]) -> None:
        expected_path = os.path.join(self.directory, datetime.now().strftime(self.path_pattern))

        if expected_path != self._current_path or self._needs_size_rotation():
            self._rotate(expected_path)

        for event in events:
            line = _to_line(event)
            self._current_file.write(line)
            self._current_size += len(line.encode(self.encoding))

        self._current_file.flush()

    @property
    def current_path(self) -> str:
        return self._current_path

    def _needs_size_rotation(self) -> bool:
        return self.max_bytes > 0 and self._current_size >= self.max_bytes

    def _rotate(self, new_path: str) -> None:
        if self._current_file:
            self._current_file.close()

        # Same time bucket but full: roll over to a numbered sibling
        if new_path == self._current_path and self._needs_size_rotation():
            base, ext = os.path.splitext(new_path)
            suffix = 1
            while os.path.exists(f"{base}.{suffix}{ext}"):
                suffix += 1
            new_path = f"{base}.{suffix}{ext}"

        Path(new_path).parent.mkdir(parents=True, exist_ok=True)
        self._current_path = new_path
        self._current_file = open(new_path, "a", encoding=self.encoding)
        self._current_size = os.path.getsize(new_path)
        logger.debug(f"Rotated telemetry file to {new_path}")
