"""
Turns camera frames and gallery files into upload-ready EncodedImage payloads.

Camera frames are JPEG-encoded at their native resolution. Gallery files are
passed through untouched but must be at most MAX_UPLOAD_BYTES; the check runs
before the file is read and long before anything touches the network.
"""
import asyncio
import mimetypes
import os
import time
from pathlib import Path

import cv2

from fishtracker.adapters.camera.base import CaptureHandle
from fishtracker.orchestrator.contracts import EncodedImage, MAX_UPLOAD_BYTES
from fishtracker.orchestrator.errors import PayloadTooLarge, Unavailable

MANUAL_QUALITY = 0.9
LIVE_QUALITY = 0.8   # smaller payloads, faster uploads


class ImageEncoder:
    def __init__(self, status_store, max_file_bytes: int = MAX_UPLOAD_BYTES):
        self.status = status_store
        self.max_file_bytes = max_file_bytes

    async def capture_frame(self, handle: CaptureHandle, quality: float = MANUAL_QUALITY) -> EncodedImage:
        frame = await handle.read_frame()
        data = await asyncio.to_thread(self._encode_jpeg, frame, quality)
        h, w = frame.shape[:2]
        self.status.log(f"encoder: frame {w}x{h} q={quality:.2f} -> {len(data)} bytes")
        return EncodedImage(data=data, mime_type="image/jpeg", filename=f"capture-{int(time.time() * 1000)}.jpg")

    def from_file(self, path) -> EncodedImage:
        path = Path(path)
        self.check_size(os.path.getsize(path), path.name)
        return self._wrap(path.read_bytes(), path.name, None)

    def from_bytes(self, data: bytes, filename: str, content_type: str | None = None) -> EncodedImage:
        self.check_size(len(data), filename)
        return self._wrap(data, filename, content_type)

    def check_size(self, size: int, filename: str):
        if size > self.max_file_bytes:
            self.status.error(f"encoder: {filename} rejected, {size} bytes > {self.max_file_bytes}")
            raise PayloadTooLarge(size, self.max_file_bytes)

    def _wrap(self, data: bytes, filename: str, content_type: str | None) -> EncodedImage:
        mime = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        self.status.log(f"encoder: file {filename} ({mime}, {len(data)} bytes)")
        return EncodedImage(data=data, mime_type=mime, filename=filename)

    @staticmethod
    def _encode_jpeg(frame, quality: float) -> bytes:
        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))])
        if not ok:
            raise Unavailable("JPEG encoding failed")
        return buf.tobytes()
