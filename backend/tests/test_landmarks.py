from types import SimpleNamespace

import numpy as np

from landmarks import LEFT_HIP, Landmark, normalize_frame
from pose_factory import make_pose


def test_output_always_has_33_entries():
    for n in range(0, 41):
        raw = [{"x": 0.1, "y": 0.2, "z": 0.3, "visibility": 0.9}] * n
        frame = normalize_frame(raw)
        assert frame.shape == (33, 4)
        assert frame.dtype == np.float32


def test_missing_input_degrades_to_zeros():
    assert not normalize_frame(None).any()
    assert not normalize_frame([]).any()


def test_short_input_is_zero_padded():
    frame = normalize_frame([{"x": 0.1, "y": 0.2, "z": 0.3, "visibility": 0.9}] * 5)
    assert frame[:5].any(axis=1).all()
    assert not frame[5:].any()


def test_low_visibility_joints_are_zeroed():
    pose = make_pose(hidden=(LEFT_HIP,))
    pose[0] = dict(pose[0], visibility=0.3)  # not strictly above the threshold
    frame = normalize_frame(pose, visibility_threshold=0.3)
    assert frame[LEFT_HIP].tolist() == [0.0, 0.0, 0.0, 0.0]
    assert frame[0].tolist() == [0.0, 0.0, 0.0, 0.0]
    assert frame[11, 3] > 0


def test_threshold_is_configurable():
    pose = [{"x": 0.5, "y": 0.5, "z": 0.0, "visibility": 0.4}]
    assert normalize_frame(pose, visibility_threshold=0.3)[0, 3] > 0
    assert normalize_frame(pose, visibility_threshold=0.5)[0, 3] == 0


def test_accepts_objects_sequences_and_gaps():
    raw = [
        Landmark(0.1, 0.2, 0.3, 0.9),
        SimpleNamespace(x=0.4, y=0.5, z=0.6, visibility=0.8),
        (0.7, 0.8, 0.9, 0.95),
        None,
        {"y": 0.1},
        {"x": float("nan"), "y": 0.1, "z": 0.0, "visibility": 0.9},
    ]
    frame = normalize_frame(raw)
    assert frame[0, 0] == np.float32(0.1)
    assert frame[1, 1] == np.float32(0.5)
    assert frame[2, 3] == np.float32(0.95)
    assert not frame[3:6].any()


def test_extra_landmarks_are_ignored():
    raw = [{"x": 0.1, "y": 0.2, "z": 0.3, "visibility": 0.9}] * 40
    frame = normalize_frame(raw)
    assert frame.shape == (33, 4)
    assert frame.all()


def test_values_overflowing_float32_are_treated_as_missing():
    raw = [
        {"x": 1e40, "y": 0.5, "z": 0.0, "visibility": 0.9},
        {"x": 0.5, "y": -1e39, "z": 0.0, "visibility": 0.9},
        {"x": 0.5, "y": 0.5, "z": 0.0, "visibility": 0.9},
    ]
    frame = normalize_frame(raw)
    assert np.isfinite(frame).all()
    assert not frame[:2].any()
    assert frame[2, 3] == np.float32(0.9)
