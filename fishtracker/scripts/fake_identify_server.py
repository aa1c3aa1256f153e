"""
Fake fish identification service for running the capture service without the
real backend.

Simulates the backend on port 5000. Uploads sleep for FAKE_DELAY_S seconds
(simulating inference) and then detect a random catalogue fish, or nothing
one time in four.

Usage:
    python -m fishtracker.scripts.fake_identify_server
    FISHTRACKER_API_BASE_URL=http://localhost:5000 fishtracker-service
"""

import asyncio
import os
import random
import uuid
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile

from fishtracker.adapters.upload.mock_upload import CATALOGUE
from fishtracker.orchestrator.contracts import MAX_UPLOAD_BYTES

app = FastAPI(title="fake-identify-server")

DELAY_S = float(os.getenv("FAKE_DELAY_S", "1.5"))

_devices: set[str] = set()
_history: dict[str, list[dict]] = {}


def _ok(data, message: str = "OK") -> dict:
    return {"success": True, "message": message, "data": data}


def _fish(entity) -> dict:
    return entity.model_dump(by_alias=True)


@app.post("/device/register")
async def register(body: dict):
    device_id = body.get("id")
    if not device_id:
        raise HTTPException(status_code=400, detail="id required")
    _devices.add(device_id)
    print(f"[fake] registered {device_id}")
    return _ok(None, "registered")


@app.post("/fish/upload")
async def upload(deviceId: str = Form(...), file: UploadFile = File(...)):
    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="file too large")
    print(f"[fake] upload from {deviceId}: {file.filename} {len(data)} bytes, thinking {DELAY_S:.1f}s ...")
    await asyncio.sleep(DELAY_S)

    if random.random() < 0.25:
        print("[fake] no fish")
        return _ok({"fishDetected": False, "fishes": []})

    fish = random.choice(CATALOGUE)
    _history.setdefault(deviceId, []).append({
        "id": str(uuid.uuid4()),
        "fishId": fish.id,
        "imageUrl": f"uploads/{file.filename}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "fish": _fish(fish),
    })
    print(f"[fake] detected {fish.name}")
    return _ok({"fishDetected": True, "fishes": [_fish(fish)]})


@app.get("/fish/details/{fish_id}")
async def details(fish_id: str):
    for fish in CATALOGUE:
        if fish.id == fish_id:
            return _ok(_fish(fish))
    raise HTTPException(status_code=404, detail="fish not found")


@app.get("/fish/{device_id}")
async def history(device_id: str):
    return _ok(_history.get(device_id, []))


if __name__ == "__main__":
    print("Fake identify server starting on http://localhost:5000")
    uvicorn.run(app, host="0.0.0.0", port=5000)
