"""Shared pytest fixtures for the fishtracker test suite."""

import asyncio

import cv2
import numpy as np
import pytest

from fishtracker.adapters.camera.mock_camera import MockCamera
from fishtracker.adapters.image.encoder import ImageEncoder
from fishtracker.orchestrator.contracts import IdentifiedEntity
from fishtracker.services.event_log import EventLog


def pytest_collection_modifyitems(config, items):
    skip_hardware = pytest.mark.skip(reason="needs a real camera")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


@pytest.fixture
def status() -> EventLog:
    return EventLog()


@pytest.fixture
def camera(status) -> MockCamera:
    return MockCamera(status, shape=(120, 160))


@pytest.fixture
def encoder(status) -> ImageEncoder:
    return ImageEncoder(status)


@pytest.fixture
def fish():
    """Factory: fish(3) -> IdentifiedEntity with id "3"."""
    def make(n: int, accuracy: float = 80.0) -> IdentifiedEntity:
        return IdentifiedEntity(id=str(n), name=f"Fish {n}", family="Testidae", ai_accuracy=accuracy)
    return make


@pytest.fixture
def jpeg_bytes() -> bytes:
    frame = np.zeros((60, 80, 3), dtype=np.uint8)
    frame[:, :40] = (0, 128, 255)
    ok, buf = cv2.imencode(".jpg", frame)
    assert ok
    return buf.tobytes()


@pytest.fixture
def wait_until():
    """Poll a condition on the running loop; fails the test after `timeout`."""
    async def wait(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.005)
    return wait
