"""Mock camera: serves synthetic frames, optionally refuses to open."""
import numpy as np
from fishtracker.adapters.camera.base import CameraAdapter


class MockCamera(CameraAdapter):
    def __init__(self, status_store, fail_with: Exception | None = None, shape=(480, 640)):
        super().__init__(status_store)
        self.fail_with = fail_with
        self.shape = shape
        self.opened = 0
        self.closed = 0

    def _open(self):
        if self.fail_with is not None:
            self.status.error(f"mock_camera: {self.fail_with}")
            raise self.fail_with
        self.opened += 1
        return object()

    def _read(self, source):
        h, w = self.shape
        # horizontal gradient so the encoder has something non-trivial to compress
        row = np.linspace(0, 255, w, dtype=np.uint8)
        frame = np.repeat(np.tile(row, (h, 1))[:, :, None], 3, axis=2)
        return frame

    def _close(self, source):
        self.closed += 1
