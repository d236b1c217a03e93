"""
Pydantic models for the telemetry API.

Provides request/response models for the telemetry endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .telemetry.events import EventKind


class RecordEventRequest(BaseModel):
    """Request model for recording an event."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": "session_3f2a",
                "user_id": "dev@example.com",
                "kind": "outcome",
                "payload": {
                    "id": "out-1",
                    "type": "success",
                    "plan_id": "plan-1",
                    "duration": 1840,
                    "summary": "Generated CRUD API",
                },
            }
        }
    )

    session_id: str = Field(..., description="Owning session (need not have been started)")
    kind: EventKind = Field(..., description="Event kind; selects the payload shape")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific payload")
    user_id: Optional[str] = Field(None, description="User that triggered the event")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")


class RecordEventResponse(BaseModel):
    id: str


class StartSessionRequest(BaseModel):
    """Request model for opening a session."""
    user_id: Optional[str] = Field(None, description="User owning the session")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="user_agent, platform, version, referrer")


class StartSessionResponse(BaseModel):
    session_id: str


class SessionModel(BaseModel):
    """Session summary for API responses."""
    id: str
    user_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    event_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EventModel(BaseModel):
    """Event representation for API responses."""
    id: str
    timestamp: datetime
    session_id: str
    user_id: Optional[str] = None
    kind: EventKind
    payload: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionEventsResponse(BaseModel):
    session_id: str
    events: List[EventModel]
    count: int


class ClearRequest(BaseModel):
    """Request model for pruning old data. Exactly one cutoff form is required."""
    older_than: Optional[datetime] = Field(None, description="Absolute cutoff (ISO 8601)")
    older_than_days: Optional[float] = Field(None, ge=0, description="Relative cutoff in days")

    @model_validator(mode="after")
    def _one_cutoff(self):
        if (self.older_than is None) == (self.older_than_days is None):
            raise ValueError("Provide exactly one of older_than or older_than_days")
        return self


class ClearResponse(BaseModel):
    cutoff: datetime
    events_removed: int
    sessions_removed: int


class HealthResponse(BaseModel):
    status: str
    manager: Dict[str, Any]
    emitter: Dict[str, Any]
    batcher: Dict[str, Any]
