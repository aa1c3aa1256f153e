"""Tests for camera acquisition and release."""

import asyncio
import threading
from contextlib import suppress

import numpy as np
import pytest

from fishtracker.adapters.camera.base import OWNER_LIVE, OWNER_MANUAL
from fishtracker.adapters.camera.mock_camera import MockCamera
from fishtracker.orchestrator.errors import InvalidTransition, PermissionDenied, Unavailable


class TestCameraLifecycle:

    @pytest.mark.asyncio
    async def test_start_publishes_handle(self, camera):
        handle = await camera.start()

        assert camera.active
        assert camera.handle is handle
        assert handle.owner == OWNER_MANUAL
        frame = await handle.read_frame()
        assert isinstance(frame, np.ndarray)
        assert frame.shape == (120, 160, 3)

    @pytest.mark.asyncio
    async def test_start_same_owner_reuses_handle(self, camera):
        first = await camera.start(OWNER_MANUAL)
        second = await camera.start(OWNER_MANUAL)

        assert first is second
        assert camera.opened == 1

    @pytest.mark.asyncio
    async def test_other_owner_must_wait_for_release(self, camera):
        await camera.start(OWNER_MANUAL)

        with pytest.raises(InvalidTransition):
            await camera.start(OWNER_LIVE)

        camera.stop()
        handle = await camera.start(OWNER_LIVE)
        assert handle.owner == OWNER_LIVE

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, camera):
        camera.stop()
        await camera.start()
        camera.stop()
        camera.stop()

        assert not camera.active
        assert camera.closed == 1

    @pytest.mark.asyncio
    async def test_released_handle_cannot_read(self, camera):
        handle = await camera.start()
        camera.stop()

        with pytest.raises(Unavailable):
            await handle.read_frame()

    @pytest.mark.asyncio
    async def test_acquire_releases_on_error(self, camera):
        with pytest.raises(RuntimeError):
            async with camera.acquire(OWNER_LIVE):
                assert camera.active
                raise RuntimeError("mode switch")

        assert not camera.active
        assert camera.closed == 1

    @pytest.mark.asyncio
    async def test_permission_denied_leaves_nothing_open(self, status):
        camera = MockCamera(status, fail_with=PermissionDenied("camera permission denied"))

        with pytest.raises(PermissionDenied):
            await camera.start()

        assert not camera.active
        assert status.entries[-1].level == "error"


class BlockingCamera(MockCamera):
    """Frame grabs park on a worker thread until `gate` is set."""

    def __init__(self, status_store):
        super().__init__(status_store, shape=(120, 160))
        self.gate = threading.Event()
        self.reading = threading.Event()

    def _read(self, source):
        self.reading.set()
        self.gate.wait(2.0)
        return super()._read(source)


class TestConcurrentStart:

    @pytest.mark.asyncio
    async def test_overlapping_starts_open_device_once(self, camera):
        first, second = await asyncio.gather(camera.start(OWNER_LIVE), camera.start(OWNER_LIVE))

        assert first is second
        assert camera.opened == 1
        camera.stop()
        assert camera.closed == 1

    @pytest.mark.asyncio
    async def test_other_owner_refused_while_opening(self, camera):
        results = await asyncio.gather(
            camera.start(OWNER_MANUAL), camera.start(OWNER_LIVE), return_exceptions=True,
        )

        assert results[0].owner == OWNER_MANUAL
        assert isinstance(results[1], InvalidTransition)
        assert camera.opened == 1

    @pytest.mark.asyncio
    async def test_owner_is_claimed_before_device_opens(self, camera):
        opening = asyncio.ensure_future(camera.start(OWNER_LIVE))
        await asyncio.sleep(0)

        assert camera.owner == OWNER_LIVE
        assert not camera.active
        await opening
        assert camera.active


class TestReleaseDuringRead:

    @pytest.mark.asyncio
    async def test_close_waits_for_frame_grab(self, status):
        camera = BlockingCamera(status)
        handle = await camera.start()
        grab = asyncio.ensure_future(handle.read_frame())
        await asyncio.to_thread(camera.reading.wait, 2.0)

        camera.stop()
        assert not camera.active
        assert camera.closed == 0

        reopen = asyncio.ensure_future(camera.start(OWNER_LIVE))
        await asyncio.sleep(0.05)
        assert camera.opened == 1

        camera.gate.set()
        frame = await grab
        live = await reopen

        assert frame.shape == (120, 160, 3)
        assert camera.closed == 1
        assert camera.opened == 2
        assert live.owner == OWNER_LIVE

    @pytest.mark.asyncio
    async def test_cancelled_reader_does_not_close_early(self, status, wait_until):
        camera = BlockingCamera(status)
        handle = await camera.start()
        grab = asyncio.ensure_future(handle.read_frame())
        await asyncio.to_thread(camera.reading.wait, 2.0)

        grab.cancel()
        with suppress(asyncio.CancelledError):
            await grab
        camera.stop()
        assert camera.closed == 0

        camera.gate.set()
        await wait_until(lambda: camera.closed == 1)
