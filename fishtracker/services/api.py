import os
from contextlib import asynccontextmanager
from typing import List

from dotenv import load_dotenv
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

from fishtracker.adapters.camera.cv2_camera import CV2Camera
from fishtracker.adapters.camera.mock_camera import MockCamera
from fishtracker.adapters.device.device_id import DeviceIdStore
from fishtracker.adapters.upload.http_upload import HttpUploadClient
from fishtracker.adapters.upload.mock_upload import MockUploadClient
from fishtracker.orchestrator import errors
from fishtracker.orchestrator.contracts import IdentifiedEntity
from fishtracker.orchestrator.live_feed import LIVE_FEED_INTERVAL_S, LIVE_FEED_WARMUP_S
from fishtracker.orchestrator.tracker import FishTracker
from fishtracker.services.event_log import EventLog
from fishtracker.services.models import (
    CatchGroupOut, CatchOut, ErrorResponse, HealthResponse, LiveFeedOut, LogEntryOut, SessionStateOut,
    live_feed_out, log_entry_out, session_state_out,
)

load_dotenv(dotenv_path=".env", override=False)

_ERROR_STATUS = {
    errors.InvalidTransition: 409,
    errors.PayloadTooLarge: 413,
    errors.CameraError: 503,
    errors.ServiceError: 502,
}


def build_tracker() -> FishTracker:
    """Wire adapters from environment variables."""
    status = EventLog()

    # Camera adapter: CAMERA_ADAPTER = cv2 | mock (default: cv2)
    if os.getenv("CAMERA_ADAPTER", "cv2").lower() == "mock":
        camera = MockCamera(status)
    else:
        camera = CV2Camera(status)
    status.log(f"camera adapter: {type(camera).__name__}")

    # Upload adapter: UPLOAD_ADAPTER = http | mock (default: http)
    if os.getenv("UPLOAD_ADAPTER", "http").lower() == "mock":
        uploader = MockUploadClient(status, delay=1.0)
        status.log("upload adapter: mock")
    else:
        base_url = os.getenv("FISHTRACKER_API_BASE_URL", "http://localhost:5000")
        uploader = HttpUploadClient(status, base_url=base_url)
        status.log(f"upload adapter: http -> {base_url}")

    device_id = DeviceIdStore(status).get_or_create()
    return FishTracker(
        camera, uploader, status, device_id,
        interval=float(os.getenv("LIVE_FEED_INTERVAL_S", LIVE_FEED_INTERVAL_S)),
        warmup=float(os.getenv("LIVE_FEED_WARMUP_S", LIVE_FEED_WARMUP_S)),
    )


def create_app(tracker: FishTracker | None = None) -> FastAPI:
    tracker = tracker or build_tracker()
    status = tracker.status

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await tracker.open()
        try:
            yield
        finally:
            status.log("shutdown: releasing camera and stopping live feed")
            await tracker.aclose()

    app = FastAPI(title="fishtracker capture service", lifespan=lifespan)
    app.state.tracker = tracker

    @app.exception_handler(errors.FishTrackerError)
    async def fishtracker_error(request: Request, exc: errors.FishTrackerError):
        code = next((s for cls, s in _ERROR_STATUS.items() if isinstance(exc, cls)), 500)
        if isinstance(exc, errors.ServiceError) and exc.status == 404:
            code = 404
        status.warning(f"{request.method} {request.url.path} -> {code} {exc.code}: {exc}")
        body = ErrorResponse(error_code=exc.code, error=str(exc))
        return JSONResponse(status_code=code, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(
            api=True,
            online=tracker.online,
            camera_adapter=type(tracker.camera).__name__,
            upload_adapter=type(tracker.uploader).__name__,
            camera_active=tracker.camera.active,
            base_url=getattr(tracker.uploader, "base_url", None),
        )

    # ── manual capture ──────────────────────────────────────────────────────

    @app.get("/session", response_model=SessionStateOut)
    def get_session():
        return session_state_out(tracker.session.state)

    @app.post("/session/capture", response_model=SessionStateOut)
    async def capture():
        return session_state_out(await tracker.session.capture())

    @app.post("/session/upload_file", response_model=SessionStateOut)
    async def upload_file(file: UploadFile = File(...)):
        # refuse on the declared size before pulling the spooled file into memory
        if file.size is not None:
            try:
                tracker.encoder.check_size(file.size, file.filename or "upload.jpg")
            except errors.PayloadTooLarge as e:
                return session_state_out(tracker.session.reject_file(e))
        data = await file.read()
        state = tracker.session.select_file(data, file.filename or "upload.jpg", file.content_type)
        return session_state_out(state)

    @app.post("/session/identify", response_model=SessionStateOut)
    async def identify():
        """Upload the previewed image. Returns once the service has answered."""
        return session_state_out(await tracker.session.identify())

    @app.post("/session/retake", response_model=SessionStateOut)
    async def retake():
        return session_state_out(await tracker.session.retake())

    # ── live feed ───────────────────────────────────────────────────────────

    @app.get("/live", response_model=LiveFeedOut)
    def get_live():
        return live_feed_out(tracker.live.state)

    @app.post("/live/start", response_model=LiveFeedOut)
    async def live_start():
        await tracker.start_live()
        return live_feed_out(tracker.live.state)

    @app.post("/live/stop", response_model=LiveFeedOut)
    async def live_stop():
        """Stop auto-capture. Counters stay readable for the summary."""
        await tracker.stop_live()
        return live_feed_out(tracker.live.state)

    # ── read paths ──────────────────────────────────────────────────────────

    @app.get("/catches", response_model=List[CatchOut])
    async def catches():
        return [CatchOut(**vars(c)) for c in await tracker.recent_catches()]

    @app.get("/catches/grouped", response_model=List[CatchGroupOut])
    async def catches_grouped():
        return [
            CatchGroupOut(title=g.title, catches=[CatchOut(**vars(c)) for c in g.catches])
            for g in await tracker.grouped_catches()
        ]

    @app.get("/fish/{fish_id}", response_model=IdentifiedEntity)
    async def fish_details(fish_id: str):
        return await tracker.uploader.get_fish_details(fish_id)

    @app.get("/logs", response_model=List[LogEntryOut])
    def logs():
        return [log_entry_out(e) for e in status.entries]

    @app.delete("/logs")
    def clear_logs():
        status.clear()
        return {"ok": True}

    return app


def main():
    import uvicorn
    uvicorn.run(
        "fishtracker.services.api:create_app",
        factory=True,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
