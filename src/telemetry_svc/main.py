"""FastAPI application - Telemetry Service.

Records development-platform telemetry (prompts, plans, artifacts, feedback,
deltas, outcomes, system and error events), groups it by session and serves
derived analytics. Recorded events are also streamed to a configurable sink.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from fastapi import FastAPI

from . import __version__, routes
from .config import Config
from .models import HealthResponse
from .telemetry.batcher import TelemetryBatcher, create_batched_consumer
from .telemetry.emitter import TelemetryEmitter
from .telemetry.manager import TelemetryManager, set_default_manager
from .telemetry.sinks.base import TelemetrySink
from .telemetry.sinks.console import ConsoleSink
from .telemetry.sinks.file import RotatingFileSink
from .telemetry.sinks.log import LogSink
from .telemetry.sinks.zmq import ZmqSink


logger = logging.getLogger(__name__)


# Global state (initialized in lifespan)
_manager: TelemetryManager | None = None
_emitter: TelemetryEmitter | None = None
_batcher: TelemetryBatcher | None = None


def create_sink(config: Config) -> TelemetrySink:
    """Build the downstream sink named by the config."""
    sink_type = config.telemetry.sink_type
    sink_config = config.telemetry.sink_config

    if sink_type == "console":
        return ConsoleSink(**sink_config)
    elif sink_type == "file":
        return RotatingFileSink(**sink_config)
    elif sink_type == "zmq":
        return ZmqSink(**sink_config)
    elif sink_type == "log":
        return LogSink(**sink_config)

    logger.warning(f"Unknown telemetry sink type '{sink_type}', using log sink")
    return LogSink()


async def create_telemetry(
    config: Config,
) -> tuple[TelemetryEmitter, TelemetryBatcher, TelemetrySink]:
    """Create the emitter -> batcher -> sink pipeline."""
    emitter = TelemetryEmitter(max_queue_size=config.telemetry.max_queue_size)

    sink = create_sink(config)
    await sink.start()

    batcher = TelemetryBatcher(
        batch_size=config.telemetry.batch_size,
        flush_interval_seconds=config.telemetry.flush_interval_seconds,
        sink=sink.send,
    )
    emitter.add_consumer(create_batched_consumer(batcher))

    return emitter, batcher, sink


async def retention_loop(manager: TelemetryManager, max_age_days: float, interval_seconds: float) -> None:
    """Periodically drop data older than ``max_age_days``."""
    logger.info(f"Retention loop started (max_age_days={max_age_days}, interval={interval_seconds}s)")
    while True:
        try:
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("Retention loop cancelled")
            break
        manager.clear_old_data(manager.clock() - timedelta(days=max_age_days))


async def _cancel(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    global _manager, _emitter, _batcher

    logger.info("Starting telemetry service...")

    config = Config.load()
    background: list[asyncio.Task] = []
    sink: TelemetrySink | None = None

    if config.telemetry.enabled:
        _emitter, _batcher, sink = await create_telemetry(config)
        await _emitter.start()
        background.append(asyncio.create_task(_emitter.process_loop()))
        background.append(asyncio.create_task(_batcher.timer_loop()))

    _manager = TelemetryManager(
        sink=_emitter.emit if _emitter else None,
        thresholds=config.analytics.thresholds(),
    )
    set_default_manager(_manager)
    routes.configure(_manager)

    if config.retention.max_age_days > 0:
        background.append(asyncio.create_task(retention_loop(
            _manager,
            config.retention.max_age_days,
            config.retention.check_interval_seconds,
        )))

    logger.info("Telemetry service started")

    yield

    logger.info("Shutting down telemetry service...")

    for task in background:
        await _cancel(task)

    if _emitter:
        await _emitter.stop()
    if _batcher:
        await _batcher.stop()
    if sink:
        await sink.stop()

    routes.configure(None)
    set_default_manager(None)
    _manager = _emitter = _batcher = None

    logger.info("Telemetry service stopped")


app = FastAPI(
    title="Telemetry Service",
    description="Session-grouped telemetry for an AI development platform, with on-demand analytics.",
    version=__version__,
    lifespan=lifespan,
)
app.include_router(routes.router)


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if _manager else "starting",
        manager=_manager.stats if _manager else {},
        emitter=_emitter.stats if _emitter else {},
        batcher=_batcher.stats if _batcher else {},
    )


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with service info."""
    return {
        "service": "Telemetry Service",
        "version": __version__,
        "endpoints": {
            "/telemetry/events": "POST - Record an event",
            "/telemetry/sessions": "POST - Start a session",
            "/telemetry/sessions/{id}/end": "POST - End a session",
            "/telemetry/sessions/{id}": "Session summary",
            "/telemetry/sessions/{id}/events": "Events recorded for a session",
            "/telemetry/analytics": "Analytics snapshot",
            "/telemetry/export": "Export state (json | csv)",
            "/telemetry/maintenance/clear": "POST - Drop data older than a cutoff",
            "/telemetry/health": "Event and error rates over the last hour",
            "/health": "Service health check",
        },
    }


def run():
    """Run the service with uvicorn."""
    import uvicorn

    config = Config.load()

    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "telemetry_svc.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
