"""
OpenCV webcam capture adapter.
CAMERA_INDEX env var (default 0) selects the webcam device; on phones and
laptops with several cameras pick the rear/environment-facing one here.
"""
import os
import sys
import cv2
from fishtracker.adapters.camera.base import CameraAdapter
from fishtracker.orchestrator.errors import PermissionDenied, Unavailable

# Preferred capture size. The driver may pick something else, which is fine.
PREFERRED_WIDTH = 1920
PREFERRED_HEIGHT = 1080


class CV2Camera(CameraAdapter):
    def __init__(self, status_store, index: int | None = None):
        super().__init__(status_store)
        self._index = index if index is not None else int(os.getenv("CAMERA_INDEX", "0"))

    def _open(self):
        self._check_permission()
        cap = cv2.VideoCapture(self._index)
        if not cap.isOpened():
            cap.release()
            self.status.error(f"cv2_camera: failed to open device {self._index}")
            raise Unavailable(f"no camera at index {self._index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, PREFERRED_WIDTH)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, PREFERRED_HEIGHT)
        return cap

    def _check_permission(self):
        # OpenCV reports a denied device the same as a missing one; look at the node first
        if not sys.platform.startswith("linux"):
            return
        node = f"/dev/video{self._index}"
        if os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            self.status.error(f"cv2_camera: permission denied on {node}")
            raise PermissionDenied(f"no permission to open {node}")

    def _read(self, cap):
        ret, frame = cap.read()
        if not ret or frame is None:
            self.status.warning("cv2_camera: frame capture failed")
            return None
        return frame

    def _close(self, cap):
        if cap.isOpened():
            cap.release()
