"""FastAPI routes for the telemetry API."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from .models import (
    ClearRequest,
    ClearResponse,
    EventModel,
    RecordEventRequest,
    RecordEventResponse,
    SessionEventsResponse,
    SessionModel,
    StartSessionRequest,
    StartSessionResponse,
)
from .telemetry.events import parse_timestamp, payload_from_dict
from .telemetry.export import EXPORT_FORMATS
from .telemetry.manager import TelemetryManager
from .telemetry.session import TelemetrySession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telemetry", tags=["Telemetry"])

# Configuration - set during app startup
_manager: TelemetryManager | None = None

_MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
}


def configure(manager: TelemetryManager | None) -> None:
    """Configure the routes with the manager they serve."""
    global _manager
    _manager = manager


def _get_manager() -> TelemetryManager:
    if _manager is None:
        raise HTTPException(status_code=503, detail="Telemetry manager not initialized")
    return _manager


def _session_to_model(session: TelemetrySession) -> SessionModel:
    return SessionModel(
        id=session.id,
        user_id=session.user_id,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_ms=session.duration_ms,
        event_count=len(session.events),
        metadata=session.metadata,
    )


# =============================================================================
# Events
# =============================================================================

@router.post("/events", response_model=RecordEventResponse)
async def record_event(body: RecordEventRequest):
    """Record a single event. The session does not need to exist."""
    manager = _get_manager()
    try:
        payload = payload_from_dict(body.kind, body.payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    event_id = manager.record_event(
        session_id=body.session_id,
        payload=payload,
        user_id=body.user_id,
        metadata=body.metadata,
    )
    return RecordEventResponse(id=event_id)


# =============================================================================
# Sessions
# =============================================================================

@router.post("/sessions", response_model=StartSessionResponse)
async def start_session(body: StartSessionRequest | None = None):
    """Open a new session."""
    body = body or StartSessionRequest()
    session_id = _get_manager().start_session(user_id=body.user_id, metadata=body.metadata)
    return StartSessionResponse(session_id=session_id)


@router.post("/sessions/{session_id}/end")
async def end_session(session_id: str):
    """Close a session. Unknown sessions are accepted and ignored."""
    _get_manager().end_session(session_id)
    return {"status": "ok", "session_id": session_id}


@router.get("/sessions/{session_id}", response_model=SessionModel)
async def get_session(session_id: str):
    session = _get_manager().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return _session_to_model(session)


@router.get("/sessions/{session_id}/events", response_model=SessionEventsResponse)
async def get_session_events(session_id: str):
    """Events recorded against a session ID, in recording order."""
    events = _get_manager().get_session_events(session_id)
    return SessionEventsResponse(
        session_id=session_id,
        events=[EventModel(**e.to_dict()) for e in events],
        count=len(events),
    )


# =============================================================================
# Analytics / health
# =============================================================================

@router.get("/analytics")
async def get_analytics() -> dict[str, Any]:
    """Current analytics snapshot."""
    return _get_manager().get_analytics().to_dict()


@router.get("/health")
async def system_health() -> dict[str, Any]:
    """Event and error rates over the last hour."""
    return _get_manager().get_system_health().to_dict()


# =============================================================================
# Export / maintenance
# =============================================================================

@router.get("/export")
async def export_data(format: str = Query("json", description="Export format: json or csv")):
    if format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported export format: {format}. Use one of: {', '.join(EXPORT_FORMATS)}",
        )
    content = _get_manager().export_data(format)
    return Response(content=content, media_type=_MEDIA_TYPES[format])


@router.post("/maintenance/clear", response_model=ClearResponse)
async def clear_old_data(body: ClearRequest):
    """Drop events and sessions older than the cutoff."""
    manager = _get_manager()

    if body.older_than is not None:
        cutoff = parse_timestamp(body.older_than)
    else:
        cutoff = manager.clock() - timedelta(days=body.older_than_days)

    before = manager.stats
    manager.clear_old_data(cutoff)
    after = manager.stats

    return ClearResponse(
        cutoff=cutoff,
        events_removed=before["events"] - after["events"],
        sessions_removed=before["sessions"] - after["sessions"],
    )
