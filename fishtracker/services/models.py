from pydantic import BaseModel
from typing import List, Literal, Optional
from fishtracker.orchestrator.contracts import (
    Capturing, Error, IdentifiedEntity, LiveFeedState, Previewing, Result, SessionState, Uploading,
)
from fishtracker.services.event_log import LogEntry

class ImageOut(BaseModel):
    filename: str
    mime_type: str
    size: int

class SessionStateOut(BaseModel):
    state: Literal["capturing", "previewing", "uploading", "result", "error"]
    camera_available: Optional[bool] = None   # only meaningful while capturing
    camera_error: Optional[str] = None
    image: Optional[ImageOut] = None
    progress: Optional[int] = None
    entities: Optional[List[IdentifiedEntity]] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

class LiveFeedOut(BaseModel):
    active: bool
    busy: bool
    capture_count: int
    total_detected: int
    latest: Optional[IdentifiedEntity] = None
    recent: List[IdentifiedEntity]

class CatchOut(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None
    tracked_time: str
    show_recent_icon: bool

class CatchGroupOut(BaseModel):
    title: str
    catches: List[CatchOut]

class LogEntryOut(BaseModel):
    timestamp: str
    level: Literal["info", "success", "warning", "error"]
    message: str
    details: Optional[dict] = None

class HealthResponse(BaseModel):
    api: bool
    online: bool                 # device registration with the backend succeeded
    camera_adapter: str
    upload_adapter: str
    camera_active: bool
    base_url: Optional[str] = None

class ErrorResponse(BaseModel):
    ok: bool = False
    error_code: str
    error: str


def session_state_out(state: SessionState) -> SessionStateOut:
    out = SessionStateOut(state=state.name)
    if isinstance(state, Capturing):
        out.camera_available = state.camera_error is None
        out.camera_error = state.camera_error
    elif isinstance(state, Previewing):
        img = state.image
        out.image = ImageOut(filename=img.filename, mime_type=img.mime_type, size=img.size)
    elif isinstance(state, Uploading):
        out.progress = state.progress
    elif isinstance(state, Result):
        out.entities = list(state.entities)
    elif isinstance(state, Error):
        out.message = state.message
        out.error_code = state.code
    return out

def live_feed_out(state: LiveFeedState) -> LiveFeedOut:
    return LiveFeedOut(
        active=state.active,
        busy=state.busy,
        capture_count=state.capture_count,
        total_detected=state.total_detected,
        latest=state.latest,
        recent=list(state.recent),
    )

def log_entry_out(entry: LogEntry) -> LogEntryOut:
    return LogEntryOut(timestamp=entry.timestamp, level=entry.level, message=entry.message, details=entry.details)
