"""
HTTP adapter for the fish identification service.

Contract:
  POST /fish/upload          multipart {deviceId, file}
  POST /device/register      {"id": deviceId}
  GET  /fish/{deviceId}      catch history
  GET  /fish/details/{id}    one fish
Every response is wrapped as {"success": bool, "message": str, "data": ...}.

The upload body is built once and streamed in chunks so progress can be
reported as bytes go out. No timeout is put on the upload itself.
"""
from typing import Any, Generic, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from fishtracker.adapters.upload.base import ProgressCallback, ProgressReporter, UploadClient
from fishtracker.orchestrator.contracts import (
    Detected, EncodedImage, Failed, FailureKind, IdentifiedEntity, NotDetected, TrackedFish, UploadOutcome,
)
from fishtracker.orchestrator.errors import ServiceError

T = TypeVar("T")

CHUNK_SIZE = 64 * 1024


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    message: str = ""
    data: Optional[T] = None


class FishUploadData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    fish_detected: bool
    fishes: List[IdentifiedEntity] = []


class HttpUploadClient(UploadClient):
    def __init__(self, status_store, base_url: str = "http://localhost:5000", timeout: float = 30.0,
                 transport: httpx.AsyncBaseTransport | None = None, chunk_size: int = CHUNK_SIZE):
        self.status = status_store
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def upload(self, device_id: str, image: EncodedImage,
                     on_progress: Optional[ProgressCallback] = None) -> UploadOutcome:
        report = ProgressReporter(on_progress)
        multipart = self._client.build_request(
            "POST", "/fish/upload",
            data={"deviceId": device_id},
            files={"file": (image.filename, image.data, image.mime_type)},
        )
        body = multipart.read()
        headers = {
            "Content-Type": multipart.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }
        self.status.log(f"http_upload: POST /fish/upload ({image.size} bytes)")
        report(0)
        try:
            resp = await self._client.post(
                "/fish/upload", content=self._stream(body, report), headers=headers, timeout=None,
            )
        except httpx.TransportError as e:
            self.status.error(f"http_upload: network error: {e!r}")
            return Failed(FailureKind.NETWORK, f"Could not reach the server: {e}")
        report(100)

        if not resp.is_success:
            self.status.error(f"http_upload: HTTP {resp.status_code}: {resp.text[:300]}")
            return Failed(FailureKind.HTTP, f"Upload failed (HTTP {resp.status_code})", status=resp.status_code)
        try:
            payload = ApiResponse[FishUploadData].model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            self.status.error(f"http_upload: malformed response: {e}")
            return Failed(FailureKind.PROTOCOL, "Malformed response from server")
        if not payload.success:
            self.status.error(f"http_upload: server refused: {payload.message}")
            return Failed(FailureKind.PROTOCOL, payload.message or "Upload rejected by server")

        data = payload.data
        if data is None or not data.fish_detected or not data.fishes:
            self.status.log("http_upload: no fish detected")
            return NotDetected()
        names = ", ".join(f.name for f in data.fishes)
        self.status.success(f"http_upload: detected {len(data.fishes)} ({names})")
        return Detected(entities=data.fishes)

    async def _stream(self, body: bytes, report: ProgressReporter):
        total = len(body)
        for start in range(0, total, self.chunk_size):
            end = min(start + self.chunk_size, total)
            yield body[start:end]
            report(end * 100 // total)

    async def register_device(self, device_id: str):
        self.status.log(f"http_upload: registering device {device_id}")
        await self._request("POST", "/device/register", Any, json={"id": device_id})
        self.status.success("http_upload: device registered")

    async def get_fish(self, device_id: str) -> List[TrackedFish]:
        fishes = await self._request("GET", f"/fish/{device_id}", List[TrackedFish])
        self.status.log(f"http_upload: received {len(fishes or [])} fish records")
        return fishes or []

    async def get_fish_details(self, fish_id: str) -> IdentifiedEntity:
        fish = await self._request("GET", f"/fish/details/{fish_id}", IdentifiedEntity)
        if fish is None:
            raise ServiceError(FailureKind.PROTOCOL, f"fish {fish_id} not found")
        return fish

    async def _request(self, method: str, path: str, model, **kwargs):
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise ServiceError(FailureKind.NETWORK, f"{method} {path}: {e}") from e
        if not resp.is_success:
            raise ServiceError(FailureKind.HTTP, f"{method} {path}: HTTP {resp.status_code}", resp.status_code)
        try:
            payload = ApiResponse[model].model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ServiceError(FailureKind.PROTOCOL, f"{method} {path}: malformed response") from e
        if not payload.success:
            raise ServiceError(FailureKind.PROTOCOL, payload.message or f"{method} {path} failed")
        return payload.data

    async def aclose(self):
        await self._client.aclose()
