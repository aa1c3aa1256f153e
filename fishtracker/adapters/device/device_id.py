"""Persists the random device id the identification service knows us by."""
import os
import uuid
from pathlib import Path

DEFAULT_PATH = Path.home() / ".fishtracker" / "device_id"


class DeviceIdStore:
    def __init__(self, status_store, path: str | Path | None = None):
        self.status = status_store
        self.path = Path(path or os.getenv("DEVICE_ID_FILE") or DEFAULT_PATH).expanduser()

    def get_or_create(self) -> str:
        if self.path.is_file():
            device_id = self.path.read_text(encoding="utf-8").strip()
            if device_id:
                return device_id
        device_id = str(uuid.uuid4())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(device_id, encoding="utf-8")
        self.status.log(f"device_id: created {device_id[:8]}...")
        return device_id
