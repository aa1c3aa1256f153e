import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Optional

import numpy as np

from fishtracker.orchestrator.errors import InvalidTransition, Unavailable

OWNER_MANUAL = "manual"
OWNER_LIVE = "live"

CLOSE_TIMEOUT_S = 5.0   # how long a reopen waits for the previous stream to let go


class CaptureHandle:
    """An open video source. Only valid until the owning adapter stops it.

    Releasing while a frame grab is still running on a worker thread defers
    the device close until that grab returns; `closed` resolves once the
    device has actually been let go.
    """

    def __init__(self, camera: "CameraAdapter", owner: str, source: Any):
        self.owner = owner
        self._camera = camera
        self._source = source
        self._reads = 0
        self.released = False
        self.closed: asyncio.Future = asyncio.get_running_loop().create_future()

    async def read_frame(self) -> np.ndarray:
        if self.released:
            raise Unavailable("camera stream already released")
        self._reads += 1
        grab = asyncio.ensure_future(asyncio.to_thread(self._camera._read, self._source))
        grab.add_done_callback(self._grab_done)
        # a cancelled caller must not close the device under the worker thread
        frame = await asyncio.shield(grab)
        if frame is None:
            raise Unavailable("frame capture failed")
        return frame

    def _grab_done(self, grab: asyncio.Future):
        if not grab.cancelled():
            grab.exception()
        self._reads -= 1
        if self.released and self._reads == 0:
            self._close()

    def _release(self):
        self.released = True
        if self._reads == 0:
            self._close()

    def _close(self):
        if self.closed.done():
            return
        try:
            self._camera._close(self._source)
        finally:
            self.closed.set_result(None)


class CameraAdapter(ABC):
    """One shared camera; at most one handle is open at a time."""

    def __init__(self, status_store):
        self.status = status_store
        self._handle: Optional[CaptureHandle] = None
        self._previous: Optional[CaptureHandle] = None
        self._opening: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[CaptureHandle]:
        return self._handle

    @property
    def owner(self) -> Optional[str]:
        """Mode holding the camera, including one that is still opening it."""
        if self._handle is not None:
            return self._handle.owner
        return self._opening

    def _check_owner(self, owner: str):
        current = self.owner
        if current is not None and current != owner:
            raise InvalidTransition(f"camera is held by {current} mode")

    async def start(self, owner: str = OWNER_MANUAL) -> CaptureHandle:
        """Acquire the camera for `owner`. Raises PermissionDenied / Unavailable.

        The camera counts as taken by `owner` from the moment this is called,
        not only once the device is open.
        """
        self._check_owner(owner)
        async with self._lock:
            self._check_owner(owner)
            if self._handle is not None:
                return self._handle
            self._opening = owner
            try:
                await self._wait_previous_closed()
                source = await asyncio.to_thread(self._open)
            finally:
                self._opening = None
            self._handle = CaptureHandle(self, owner, source)
        self.status.success(f"camera: acquired ({owner})")
        return self._handle

    async def _wait_previous_closed(self):
        previous = self._previous
        if previous is None or previous.closed.done():
            return
        self.status.log("camera: waiting for the previous stream to close")
        try:
            await asyncio.wait_for(asyncio.shield(previous.closed), CLOSE_TIMEOUT_S)
        except asyncio.TimeoutError:
            raise Unavailable("camera is still busy releasing the previous stream") from None

    def stop(self):
        """Release the camera. No-op when nothing is open."""
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        self._previous = handle
        handle._release()
        self.status.log(f"camera: released ({handle.owner})")

    @asynccontextmanager
    async def acquire(self, owner: str):
        handle = await self.start(owner)
        try:
            yield handle
        finally:
            if self._handle is handle:
                self.stop()

    @abstractmethod
    def _open(self) -> Any:
        """Open the device (blocking). Returns the adapter-specific source."""
        ...

    @abstractmethod
    def _read(self, source: Any) -> Optional[np.ndarray]:
        """Grab one BGR frame (blocking) or None on failure."""
        ...

    @abstractmethod
    def _close(self, source: Any):
        ...
