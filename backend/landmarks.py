"""
Landmark model and frame normalization for FitTrack.

A pose frame is always carried through the pipeline as a (33, 4) float32 array
of (x, y, z, visibility) in MediaPipe PoseLandmark order. Low-confidence or
missing joints are zeroed, never dropped, so downstream shapes stay fixed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np

NUM_LANDMARKS = 33
LANDMARK_FIELDS = 4

# MediaPipe pose topology (subset used by the pipeline).
POSE_LANDMARKS = {
    "NOSE": 0,
    "LEFT_SHOULDER": 11,
    "RIGHT_SHOULDER": 12,
    "LEFT_ELBOW": 13,
    "RIGHT_ELBOW": 14,
    "LEFT_WRIST": 15,
    "RIGHT_WRIST": 16,
    "LEFT_HIP": 23,
    "RIGHT_HIP": 24,
    "LEFT_KNEE": 25,
    "RIGHT_KNEE": 26,
    "LEFT_ANKLE": 27,
    "RIGHT_ANKLE": 28,
}

LEFT_SHOULDER = POSE_LANDMARKS["LEFT_SHOULDER"]
RIGHT_SHOULDER = POSE_LANDMARKS["RIGHT_SHOULDER"]
LEFT_ELBOW = POSE_LANDMARKS["LEFT_ELBOW"]
RIGHT_ELBOW = POSE_LANDMARKS["RIGHT_ELBOW"]
LEFT_WRIST = POSE_LANDMARKS["LEFT_WRIST"]
RIGHT_WRIST = POSE_LANDMARKS["RIGHT_WRIST"]
LEFT_HIP = POSE_LANDMARKS["LEFT_HIP"]
RIGHT_HIP = POSE_LANDMARKS["RIGHT_HIP"]
LEFT_KNEE = POSE_LANDMARKS["LEFT_KNEE"]
RIGHT_KNEE = POSE_LANDMARKS["RIGHT_KNEE"]
LEFT_ANKLE = POSE_LANDMARKS["LEFT_ANKLE"]
RIGHT_ANKLE = POSE_LANDMARKS["RIGHT_ANKLE"]

DEFAULT_VISIBILITY_THRESHOLD = 0.3


@dataclass(frozen=True)
class Landmark:
    """A single tracked body point with a confidence score."""

    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    @staticmethod
    def coerce(raw: Any) -> Optional["Landmark"]:
        """
        Accept the shapes landmark sources hand us: Landmark, dict
        ({"x":..., "y":..., "z":..., "visibility":...}), objects with x/y/z
        attributes (MediaPipe NormalizedLandmark) or a 3/4-sequence.
        Returns None when the entry cannot be read.
        """
        if raw is None:
            return None
        if isinstance(raw, Landmark):
            return raw
        try:
            if isinstance(raw, Mapping):
                return Landmark(
                    float(raw["x"]),
                    float(raw["y"]),
                    float(raw.get("z") or 0.0),
                    float(raw.get("visibility") or 0.0),
                )
            if hasattr(raw, "x") and hasattr(raw, "y"):
                return Landmark(
                    float(raw.x),
                    float(raw.y),
                    float(getattr(raw, "z", 0.0) or 0.0),
                    float(getattr(raw, "visibility", 0.0) or 0.0),
                )
            values = list(raw)
            if len(values) < 3:
                return None
            vis = values[3] if len(values) > 3 else 0.0
            return Landmark(float(values[0]), float(values[1]), float(values[2]), float(vis))
        except (KeyError, TypeError, ValueError):
            return None

    def to_dict(self):
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


def empty_frame(num_landmarks: int = NUM_LANDMARKS) -> np.ndarray:
    return np.zeros((num_landmarks, LANDMARK_FIELDS), dtype=np.float32)


def normalize_frame(
        landmarks: Optional[Iterable[Any]],
        visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
        num_landmarks: int = NUM_LANDMARKS,
) -> np.ndarray:
    """
    Convert a raw landmark list into a fixed (33, 4) frame.

    Entries beyond the input, unreadable entries, non-finite values and joints
    whose visibility is not above the threshold all become (0, 0, 0, 0).
    """
    frame = empty_frame(num_landmarks)
    if landmarks is None:
        return frame

    for i, raw in enumerate(landmarks):
        if i >= num_landmarks:
            break
        lm = Landmark.coerce(raw)
        if lm is None or not lm.visibility > visibility_threshold:
            continue
        with np.errstate(over="ignore", invalid="ignore"):
            values = np.array((lm.x, lm.y, lm.z, lm.visibility), dtype=np.float64).astype(np.float32)
        # Finite doubles can still overflow float32.
        if not np.isfinite(values).all():
            continue
        frame[i] = values
    return frame


def is_present(frame: np.ndarray, idx: int) -> bool:
    """A normalized joint is present when it survived the visibility gate."""
    return bool(frame[idx, 3] > 0.0)


def all_present(frame: np.ndarray, indices: Sequence[int]) -> bool:
    return all(is_present(frame, i) for i in indices)


def frame_to_dicts(frame: np.ndarray):
    return [
        {"x": float(x), "y": float(y), "z": float(z), "visibility": float(v)}
        for x, y, z, v in frame
    ]
