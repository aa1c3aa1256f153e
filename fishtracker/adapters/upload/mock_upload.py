import asyncio
import random
from datetime import datetime, timezone
from typing import List, Optional

from fishtracker.adapters.upload.base import ProgressReporter, UploadClient
from fishtracker.orchestrator.contracts import (
    Detected, EncodedImage, FailureKind, IdentifiedEntity, TrackedFish, UploadOutcome,
)
from fishtracker.orchestrator.errors import ServiceError

CATALOGUE = [
    IdentifiedEntity(id="1", name="Atlantic Salmon", family="Salmonidae", min_size=50, max_size=150,
                     depth_range_min=0, depth_range_max=210, water_type="Saltwater",
                     conservation_status="Least Concern", ai_accuracy=92),
    IdentifiedEntity(id="2", name="Northern Pike", family="Esocidae", min_size=40, max_size=150,
                     depth_range_min=0, depth_range_max=30, water_type="Freshwater",
                     conservation_status="Least Concern", ai_accuracy=87),
    IdentifiedEntity(id="3", name="European Eel", family="Anguillidae", min_size=60, max_size=133,
                     depth_range_min=0, depth_range_max=700, water_type="Brackish",
                     conservation_status="Critically Endangered", ai_accuracy=74),
]

_PROGRESS_STEPS = (25, 50, 75, 100)


class MockUploadClient(UploadClient):
    """Scripted identification service.

    `outcomes` are returned in order (the last one repeats). Without a script a
    random catalogue fish is returned. `gate`, when given, holds every upload
    until it is set.
    """

    def __init__(self, status_store, outcomes: Optional[List[UploadOutcome]] = None,
                 delay: float = 0.0, gate: Optional[asyncio.Event] = None):
        self.status = status_store
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.gate = gate
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.registered: List[str] = []
        self.history: List[TrackedFish] = []

    async def upload(self, device_id: str, image: EncodedImage, on_progress=None) -> UploadOutcome:
        self.calls.append((device_id, image))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        report = ProgressReporter(on_progress)
        try:
            report(0)
            if self.gate is not None:
                await self.gate.wait()
            for step in _PROGRESS_STEPS:
                if self.delay:
                    await asyncio.sleep(self.delay / len(_PROGRESS_STEPS))
                report(step)
            outcome = self._next_outcome()
        finally:
            self.in_flight -= 1
        if isinstance(outcome, Detected):
            stamp = datetime.now(timezone.utc).isoformat()
            for fish in outcome.entities:
                self.history.append(TrackedFish(id=str(len(self.history) + 1), fish_id=fish.id,
                                                timestamp=stamp, fish=fish))
        self.status.log(f"mock_upload: {type(outcome).__name__}")
        return outcome

    def _next_outcome(self) -> UploadOutcome:
        if not self.outcomes:
            return Detected(entities=[random.choice(CATALOGUE)])
        if len(self.outcomes) == 1:
            return self.outcomes[0]
        return self.outcomes.pop(0)

    async def register_device(self, device_id: str):
        self.registered.append(device_id)

    async def get_fish(self, device_id: str) -> List[TrackedFish]:
        return list(self.history)

    async def get_fish_details(self, fish_id: str) -> IdentifiedEntity:
        for fish in CATALOGUE + [t.fish for t in self.history]:
            if fish.id == fish_id:
                return fish
        raise ServiceError(FailureKind.HTTP, f"fish {fish_id} not found", 404)
