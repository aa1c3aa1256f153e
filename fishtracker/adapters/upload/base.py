from typing import Callable, List, Optional

from fishtracker.orchestrator.contracts import EncodedImage, IdentifiedEntity, TrackedFish, UploadOutcome

ProgressCallback = Callable[[int], None]


class UploadClient:
    async def upload(self, device_id: str, image: EncodedImage,
                     on_progress: Optional[ProgressCallback] = None) -> UploadOutcome:
        """Submit one image. Never raises for network/server problems; returns Failed instead."""
        raise NotImplementedError

    async def register_device(self, device_id: str):
        raise NotImplementedError

    async def get_fish(self, device_id: str) -> List[TrackedFish]:
        raise NotImplementedError

    async def get_fish_details(self, fish_id: str) -> IdentifiedEntity:
        raise NotImplementedError

    async def aclose(self):
        pass


class ProgressReporter:
    """Clamps to [0, 100] and only forwards values that move forward."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self.last = -1

    def __call__(self, percent: int):
        percent = max(0, min(100, int(percent)))
        if percent <= self.last:
            return
        self.last = percent
        if self._callback is not None:
            self._callback(percent)
