import asyncio
from contextlib import suppress
from typing import List, Optional

from fishtracker.adapters.camera.base import OWNER_LIVE
from fishtracker.adapters.image.encoder import LIVE_QUALITY
from fishtracker.orchestrator.contracts import Detected, Failed, LiveFeedState, UploadOutcome
from fishtracker.orchestrator.errors import InvalidTransition
from fishtracker.orchestrator.timers import ScheduledTask, call_every, call_later

LIVE_FEED_INTERVAL_S = 5.0
LIVE_FEED_WARMUP_S = 0.5   # let the stream settle before the first grab


class LiveFeedScheduler:
    """
    Auto-capture loop: every `interval` seconds grab a frame and upload it.

    Single flight: a tick that fires while the previous cycle is still
    outstanding is dropped, never queued. Failures are logged and the loop
    keeps going. stop() cancels future ticks but lets an in-flight upload
    finish; its result is still applied to `state`.
    """

    def __init__(self, camera, encoder, uploader, status_store, device_id: str,
                 interval: float = LIVE_FEED_INTERVAL_S, warmup: float = LIVE_FEED_WARMUP_S,
                 quality: float = LIVE_QUALITY):
        self.camera = camera
        self.encoder = encoder
        self.uploader = uploader
        self.status = status_store
        self.device_id = device_id
        self.interval = interval
        self.warmup = warmup
        self.quality = quality
        self.state = LiveFeedState()
        self._timers: List[ScheduledTask] = []
        self._handle = None
        self._inflight: Optional[asyncio.Task] = None
        self._starting = False

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def starting(self) -> bool:
        return self._starting

    async def start(self):
        if self.state.active or self._starting:
            raise InvalidTransition("live feed already running")
        self._starting = True
        try:
            self._handle = await self.camera.start(OWNER_LIVE)
        finally:
            self._starting = False
        self.state.active = True
        self.state.capture_count = 0
        self.state.total_detected = 0
        self._timers = [
            call_later(self.warmup, self.tick),
            call_every(self.interval, self.tick),
        ]
        self.status.success(f"live_feed: started (every {self.interval:g}s)")

    def stop(self):
        if not self.state.active:
            return
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        self.state.active = False
        if self._handle is not None and self.camera.handle is self._handle:
            self.camera.stop()
        self._handle = None
        self.status.log(
            f"live_feed: stopped after {self.state.capture_count} captures, "
            f"{self.state.total_detected} detected"
        )

    def tick(self) -> bool:
        """One scheduled slot. Returns False when the slot is dropped."""
        if not self.state.active:
            return False
        if self.state.busy:
            self.status.log("live_feed: previous cycle still running, tick dropped")
            return False
        self.state.busy = True
        self.state.capture_count += 1
        self._inflight = asyncio.ensure_future(self._run_cycle(self.state.capture_count, self._handle))
        return True

    async def _run_cycle(self, n: int, handle):
        try:
            self.status.log(f"live_feed: cycle {n} capturing")
            image = await self.encoder.capture_frame(handle, self.quality)
            outcome = await self.uploader.upload(self.device_id, image)
            self._apply(n, outcome)
        except Exception as e:
            self.status.error(f"live_feed: cycle {n} error {type(e).__name__}: {e}")
        finally:
            self.state.busy = False

    def _apply(self, n: int, outcome: UploadOutcome):
        if isinstance(outcome, Detected):
            self.state.record_detection(outcome.entities)
            self.status.success(
                f"live_feed: cycle {n} detected {len(outcome.entities)} "
                f"(latest={self.state.latest.name}, total={self.state.total_detected})"
            )
        elif isinstance(outcome, Failed):
            self.status.warning(f"live_feed: cycle {n} failed ({outcome.kind.value}): {outcome.message}")
        else:
            self.status.log(f"live_feed: cycle {n} no fish")

    async def wait_idle(self):
        if self._inflight is not None and not self._inflight.done():
            await asyncio.shield(self._inflight)

    async def aclose(self):
        """Teardown: stop and abandon any upload still running."""
        self.stop()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            with suppress(asyncio.CancelledError):
                await self._inflight
        self._inflight = None
