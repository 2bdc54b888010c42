import numpy as np
import pytest

pytest.importorskip("cv2")
pytest.importorskip("mediapipe")

from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
from classifier import CallableEngine  # noqa: E402
from pose_factory import make_pose  # noqa: E402


@pytest.fixture
def client():
    original = main.app.state.engine_factory
    main.app.state.engine_factory = lambda: CallableEngine(
        lambda tensor: np.array([[0.05, 0.05, 0.1, 0.8]])
    )
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.state.engine_factory = original


def test_root_lists_sources_and_engines(client):
    body = client.get("/").json()
    assert "mediapipe" in body["available_sources"]
    assert "none" in body["available_engines"]
    assert body["labels"] == main.settings.labels


def test_settings_endpoint(client):
    body = client.get("/settings").json()
    assert body["window_size"] == main.settings.window_size
    assert body["window_policy"] == main.settings.window_policy


def test_websocket_landmark_frames_and_commands(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"landmarks": make_pose(), "ts": 12.5})
        payload = ws.receive_json()
        assert payload["rep_count"] == 0
        assert payload["exercise"] == "none"
        assert payload["is_calibrating"]
        assert payload["window_fill"] == 1
        assert payload["client_ts"] == 12.5
        assert "latency_ms" in payload

        ws.send_json({"command": "status"})
        status = ws.receive_json()
        assert status["status"] == "ok"
        assert status["classifier"]["engine"] == "callable"
        assert status["session"]["frames_received"] == 1

        ws.send_json({"command": "reset"})
        reset = ws.receive_json()
        assert reset["command"] == "reset"
        assert reset["epoch"] == 1
        assert reset["window_fill"] == 0

        ws.send_json({"command": "jump"})
        assert ws.receive_json()["status"] == "error"


def test_websocket_skips_malformed_packets(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_json({"frame": "data:image/png;base64,AAAA"})
        ws.send_json({"landmarks": "nope"})
        ws.send_json({"landmarks": make_pose()})
        assert ws.receive_json()["window_fill"] == 1


def test_websocket_frame_without_pose_keeps_window(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"landmarks": make_pose()})
        assert ws.receive_json()["pose_detected"]

        ws.send_json({"landmarks": []})
        payload = ws.receive_json()
        assert not payload["pose_detected"]
        assert payload["window_fill"] == 1

        ws.send_json({"command": "status"})
        assert ws.receive_json()["session"]["frames_received"] == 1
