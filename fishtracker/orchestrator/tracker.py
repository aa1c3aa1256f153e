from typing import List

from fishtracker.adapters.image.encoder import ImageEncoder
from fishtracker.orchestrator import errors
from fishtracker.orchestrator.catches import CatchGroup, CatchSummary, group_catches, summarize_catches
from fishtracker.orchestrator.contracts import Capturing
from fishtracker.orchestrator.live_feed import LIVE_FEED_INTERVAL_S, LIVE_FEED_WARMUP_S, LiveFeedScheduler
from fishtracker.orchestrator.state_machine import CaptureSession


class FishTracker:
    """
    Owns one CaptureSession and one LiveFeedScheduler sharing a camera.

    Only one of them holds the camera at a time: starting the live feed takes
    it from the session (which must be in Capturing), stopping hands it back.
    """

    def __init__(self, camera, uploader, status_store, device_id: str, encoder: ImageEncoder | None = None,
                 interval: float = LIVE_FEED_INTERVAL_S, warmup: float = LIVE_FEED_WARMUP_S):
        self.camera = camera
        self.uploader = uploader
        self.status = status_store
        self.device_id = device_id
        self.encoder = encoder or ImageEncoder(status_store)
        self.session = CaptureSession(camera, self.encoder, uploader, status_store, device_id)
        self.live = LiveFeedScheduler(camera, self.encoder, uploader, status_store, device_id,
                                      interval=interval, warmup=warmup)
        self.online = False

    async def open(self):
        self.status.log(f"tracker: device {self.device_id[:8]}...")
        try:
            await self.uploader.register_device(self.device_id)
            self.online = True
        except errors.ServiceError as e:
            self.status.warning(f"tracker: backend not available, offline mode ({e})")
        await self.session.begin()

    async def start_live(self):
        if self.live.active or self.live.starting:
            raise errors.InvalidTransition("live feed already running")
        if not isinstance(self.session.state, Capturing):
            raise errors.InvalidTransition(f"cannot start the live feed while {self.session.state.name}")
        self.session.release_camera()
        try:
            await self.live.start()
        except errors.FishTrackerError:
            await self.session.begin()
            raise

    async def stop_live(self):
        if not self.live.active:
            return
        self.live.stop()
        await self.session.begin()

    async def recent_catches(self) -> List[CatchSummary]:
        history = await self.uploader.get_fish(self.device_id)
        catches = summarize_catches(history, getattr(self.uploader, "base_url", ""))
        recent = sum(1 for c in catches if c.show_recent_icon)
        self.status.success(f"tracker: loaded {len(catches)} catches ({recent} recent)")
        return catches

    async def grouped_catches(self) -> List[CatchGroup]:
        history = await self.uploader.get_fish(self.device_id)
        groups = group_catches(history, getattr(self.uploader, "base_url", ""))
        self.status.log("tracker: catches by day " + ", ".join(f"{g.title}={len(g.catches)}" for g in groups))
        return groups

    async def aclose(self):
        await self.live.aclose()
        self.session.close()
        self.camera.stop()
        await self.uploader.aclose()
