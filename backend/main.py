import base64
import json
import logging
import os
import time
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import uvloop
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from classifier import build_inference_engine, get_available_engines
from pipeline import ExerciseTrackingPipeline
from pose_backends import build_landmark_source, get_available_sources
from settings import PipelineSettings

# Install and use uvloop as the default event loop
uvloop.install()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LANDMARK_SOURCE_NAME = os.getenv("LANDMARK_SOURCE", "mediapipe")
INFERENCE_ENGINE_NAME = os.getenv("INFERENCE_ENGINE", "none")

app = FastAPI()

settings = PipelineSettings.from_env()

# Hosts that load a model replace this with a factory returning their engine.
app.state.engine_factory = lambda: build_inference_engine(INFERENCE_ENGINE_NAME)


class LandmarkPayload(BaseModel):
    landmarks: List[Any] = []
    ts: Optional[float] = None

    class Config:
        extra = "ignore"  # Ignore extra fields


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {
        "message": "Welcome to FitTrack - Real-Time Exercise Recognition & Rep Counting API",
        "landmark_source": LANDMARK_SOURCE_NAME,
        "available_sources": get_available_sources(),
        "inference_engine": INFERENCE_ENGINE_NAME,
        "available_engines": get_available_engines(),
        "labels": settings.labels,
    }


@app.get("/settings")
def read_settings():
    return settings.to_dict()


def decode_jpeg(data: str) -> Optional[np.ndarray]:
    if not isinstance(data, str) or not data.startswith("data:image/jpeg;base64,"):
        logger.warning("Received malformed data packet")
        return None
    try:
        _, encoded = data.split(",", 1)
        img_data = base64.b64decode(encoded)
        nparr = np.frombuffer(img_data, np.uint8)
        return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except Exception as decode_error:
        logger.warning("Failed to decode frame: %s", decode_error)
        return None


def handle_command(pipeline: ExerciseTrackingPipeline, command_data: Dict[str, Any]) -> Dict[str, Any]:
    command = command_data.get("command")
    if command == "reset":
        pipeline.restart()
    elif command == "recalibrate":
        pipeline.recalibrate()
    elif command == "status":
        return {"status": "ok", "session": pipeline.session.to_dict(), "classifier": pipeline.invoker.get_stats()}
    else:
        return {"status": "error", "message": f"Unknown command '{command}'"}
    return {"status": "ok", "command": command, **pipeline.get_progress()}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    logger.info(
        "WebSocket connection attempt received (source=%s, engine=%s).",
        LANDMARK_SOURCE_NAME, INFERENCE_ENGINE_NAME,
    )
    await websocket.accept()
    logger.info("WebSocket connection accepted.")

    pipeline = ExerciseTrackingPipeline(settings, engine=app.state.engine_factory())
    source = None

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Received malformed data packet")
                continue
            if not isinstance(message, dict):
                logger.warning("Received malformed data packet")
                continue

            if "command" in message:
                await websocket.send_json(handle_command(pipeline, message))
                continue

            frame_timestamp = message.get("ts")
            process_start = time.perf_counter()

            if "frame" in message:
                frame = decode_jpeg(message["frame"])
                if frame is None:
                    continue
                if source is None:
                    source = build_landmark_source(LANDMARK_SOURCE_NAME)
                try:
                    landmarks = source.process_frame(frame)
                except Exception as estimation_error:
                    logger.error("Error estimating pose: %s", estimation_error)
                    landmarks = None
            else:
                try:
                    landmarks = LandmarkPayload(**message).landmarks
                except ValidationError as validation_error:
                    logger.warning("Invalid landmark payload: %s", validation_error)
                    continue

            payload = await pipeline.process_frame_async(landmarks)
            payload["pose_detected"] = bool(landmarks)
            payload["latency_ms"] = (time.perf_counter() - process_start) * 1000
            if frame_timestamp is not None:
                payload["client_ts"] = frame_timestamp
            await websocket.send_json(payload)

    except Exception as websocket_error:
        logger.error("WebSocket connection error: %s", websocket_error)
    finally:
        pipeline.close()
        if source is not None:
            source.close()
        logger.info("Client connection closed")
