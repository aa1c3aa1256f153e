from typing import Callable, List, Optional, Tuple, Type

from fishtracker.adapters.camera.base import OWNER_MANUAL
from fishtracker.adapters.image.encoder import MANUAL_QUALITY
from fishtracker.orchestrator import errors
from fishtracker.orchestrator.contracts import (
    Capturing, Detected, EncodedImage, Error, Failed, NotDetected, Previewing, Result, SessionState,
    Uploading, UploadOutcome,
)

NO_FISH_MESSAGE = "No fish detected. Try again with the fish clearly in view."

Listener = Callable[[SessionState], None]


class CaptureSession:
    """
    Manual capture-to-result cycle:

        Capturing -> Previewing -> Uploading -> Result | Error -> Capturing

    The camera only runs while in Capturing. A trigger that is not valid for
    the current state raises InvalidTransition and leaves the state alone.
    """

    def __init__(self, camera, encoder, uploader, status_store, device_id: str,
                 quality: float = MANUAL_QUALITY):
        self.camera = camera
        self.encoder = encoder
        self.uploader = uploader
        self.status = status_store
        self.device_id = device_id
        self.quality = quality
        self._state: SessionState = Capturing()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, state: SessionState):
        previous, self._state = self._state, state
        if previous == state:
            return
        if type(previous) is not type(state):
            self.status.log(f"session: {previous.name} -> {state.name}")
        for listener in list(self._listeners):
            listener(state)

    def _require(self, allowed: Tuple[Type, ...], action: str):
        if not isinstance(self._state, allowed):
            raise errors.InvalidTransition(f"cannot {action} while {self._state.name}")

    def _require_camera_free(self):
        owner = self.camera.owner
        if owner is not None and owner != OWNER_MANUAL:
            raise errors.InvalidTransition(f"camera is in use by {owner} mode")

    def release_camera(self):
        handle = self.camera.handle
        if handle is not None and handle.owner == OWNER_MANUAL:
            self.camera.stop()

    async def begin(self) -> SessionState:
        """Enter Capturing and (re)start the camera.

        A camera that cannot be acquired is not an error state: the session
        stays in Capturing with `camera_error` set so gallery upload still works.
        """
        self._require_camera_free()
        try:
            await self.camera.start(OWNER_MANUAL)
        except errors.CameraError as e:
            self.status.warning(f"session: camera unavailable ({e.code}): {e}")
            self._set(Capturing(camera_error=str(e) or e.code))
            return self._state
        self._set(Capturing())
        return self._state

    async def capture(self) -> SessionState:
        self._require((Capturing,), "capture")
        self._require_camera_free()
        handle = self.camera.handle
        if handle is None:
            raise errors.InvalidTransition("camera is not active")
        before = self._state
        image = await self.encoder.capture_frame(handle, self.quality)
        if self._state is not before:
            raise errors.InvalidTransition(f"state changed to {self._state.name} during capture")
        if handle.released:
            raise errors.InvalidTransition("camera was handed over during capture")
        self._preview(image)
        return self._state

    def select_file(self, data: bytes, filename: str, content_type: Optional[str] = None) -> SessionState:
        """Gallery upload. Oversized files go straight to Error, nothing is sent."""
        self._require((Capturing,), "select a file")
        self._require_camera_free()
        try:
            image = self.encoder.from_bytes(data, filename, content_type)
        except errors.PayloadTooLarge as e:
            return self.reject_file(e)
        self._preview(image)
        return self._state

    def reject_file(self, error: errors.PayloadTooLarge) -> SessionState:
        """Gallery file refused before its bytes were read (size known up front)."""
        self._require((Capturing,), "select a file")
        self._require_camera_free()
        self.release_camera()
        self._set(Error(str(error), code=error.code))
        return self._state

    def _preview(self, image: EncodedImage):
        self.release_camera()
        self._set(Previewing(image))

    async def retake(self) -> SessionState:
        self._require((Previewing, Result, Error), "retake")
        return await self.begin()

    async def identify(self) -> SessionState:
        self._require((Previewing,), "identify")
        image = self._state.image
        self._set(Uploading(0))

        def on_progress(percent: int):
            if isinstance(self._state, Uploading):
                self._set(Uploading(percent))

        try:
            outcome = await self.uploader.upload(self.device_id, image, on_progress)
        except Exception as e:
            self.status.error(f"session: upload error {type(e).__name__}: {e}")
            self._set(Error(f"Upload failed: {e}", code=errors.ERR_UNKNOWN))
            return self._state
        self._apply(outcome)
        return self._state

    def _apply(self, outcome: UploadOutcome):
        if isinstance(outcome, Detected):
            names = ", ".join(f"{f.name} ({f.ai_accuracy:.0f}%)" for f in outcome.entities)
            self.status.success(f"session: identified {names}")
            self._set(Result(outcome.entities))
        elif isinstance(outcome, NotDetected):
            self.status.log("session: no fish detected")
            self._set(Error(NO_FISH_MESSAGE, code=errors.ERR_NO_DETECTION))
        elif isinstance(outcome, Failed):
            self._set(Error(outcome.message, code=errors.FAILURE_CODES[outcome.kind]))
        else:
            raise TypeError(f"unknown upload outcome {outcome!r}")

    def close(self):
        """Page teardown: release the camera if this session holds it."""
        self.release_camera()
        self._listeners.clear()
