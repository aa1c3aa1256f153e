from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_UPLOAD_BYTES = 5 * 1024 * 1024   # gallery files only; live frames are bounded by JPEG quality

WATER_TYPES = ("Freshwater", "Saltwater", "Brackish")
CONSERVATION_STATUSES = (
    "Least Concern",
    "Near Threatened",
    "Vulnerable",
    "Endangered",
    "Critically Endangered",
    "Extinct in the Wild",
    "Extinct",
    "Data Deficient",
)


class IdentifiedEntity(BaseModel):
    """One fish as returned by the identification service (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    family: str = ""
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    depth_range_min: Optional[float] = None
    depth_range_max: Optional[float] = None
    water_type: Optional[str] = None            # see WATER_TYPES
    conservation_status: Optional[str] = None   # see CONSERVATION_STATUSES
    cons_status_description: str = ""
    description: str = ""
    color_description: str = ""
    environment: str = ""
    region: str = ""
    favorite_indicator: bool = False
    ai_accuracy: float = Field(0.0, ge=0, le=100)   # confidence, percent
    image_url: Optional[str] = None


class TrackedFish(BaseModel):
    """An entry of a device's catch history."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    fish_id: str
    image_url: Optional[str] = None
    timestamp: str
    fish: IdentifiedEntity


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    mime_type: str = "image/jpeg"
    filename: str = "capture.jpg"

    @property
    def size(self) -> int:
        return len(self.data)


# ── Upload outcome ──────────────────────────────────────────────────────────

class FailureKind(str, Enum):
    NETWORK = "network"     # nothing reached the server
    HTTP = "http"           # server answered with a non-2xx status
    PROTOCOL = "protocol"   # 2xx but the body is unusable


@dataclass(frozen=True)
class Detected:
    entities: List[IdentifiedEntity]

    def __post_init__(self):
        if not self.entities:
            raise ValueError("Detected requires at least one entity")


@dataclass(frozen=True)
class NotDetected:
    pass


@dataclass(frozen=True)
class Failed:
    kind: FailureKind
    message: str
    status: Optional[int] = None   # set only for FailureKind.HTTP


UploadOutcome = Union[Detected, NotDetected, Failed]


# ── Capture session states ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Capturing:
    # set while the camera could not be acquired; gallery upload stays available
    camera_error: Optional[str] = None
    name: ClassVar[str] = "capturing"


@dataclass(frozen=True)
class Previewing:
    image: EncodedImage
    name: ClassVar[str] = "previewing"


@dataclass(frozen=True)
class Uploading:
    progress: int = 0
    name: ClassVar[str] = "uploading"


@dataclass(frozen=True)
class Result:
    entities: List[IdentifiedEntity]
    name: ClassVar[str] = "result"


@dataclass(frozen=True)
class Error:
    message: str
    code: Optional[str] = None
    name: ClassVar[str] = "error"


SessionState = Union[Capturing, Previewing, Uploading, Result, Error]


# ── Live feed ───────────────────────────────────────────────────────────────

RECENT_LIMIT = 10


@dataclass
class LiveFeedState:
    active: bool = False
    busy: bool = False
    capture_count: int = 0
    total_detected: int = 0
    latest: Optional[IdentifiedEntity] = None
    recent: List[IdentifiedEntity] = field(default_factory=list)   # newest first

    def record_detection(self, entities: List[IdentifiedEntity]):
        self.total_detected += len(entities)
        self.latest = entities[0]
        self.recent = (list(entities) + self.recent)[:RECENT_LIMIT]
