"""
Kinematic feature extraction for FitTrack.
Implements 3D joint angles over normalized pose frames.

Implements:
- Guarded three-point joint angle (never raises, 0 on bad input)
- Fixed per-frame angle set fed to the exercise classifier
- Hip/knee angles used by the standing-pose check
"""

import logging
from typing import Optional, Tuple

import numpy as np

from landmarks import (
    LEFT_ANKLE,
    LEFT_ELBOW,
    LEFT_HIP,
    LEFT_KNEE,
    LEFT_SHOULDER,
    LEFT_WRIST,
    RIGHT_ANKLE,
    RIGHT_ELBOW,
    RIGHT_HIP,
    RIGHT_KNEE,
    RIGHT_SHOULDER,
    RIGHT_WRIST,
)

logger = logging.getLogger(__name__)

MIN_VECTOR_NORM = 1e-4
DEFAULT_ANGLE_VISIBILITY = 0.5

# (outer, vertex, outer) triples, order matches the classifier feature layout.
CLASSIFIER_ANGLE_TRIPLES = (
    (LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),     # left elbow
    (RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST),  # right elbow
    (LEFT_HIP, LEFT_KNEE, LEFT_ANKLE),           # left knee
    (RIGHT_HIP, RIGHT_KNEE, RIGHT_ANKLE),        # right knee
)

KNEE_TRIPLES = CLASSIFIER_ANGLE_TRIPLES[2:]

HIP_TRIPLES = (
    (LEFT_SHOULDER, LEFT_HIP, LEFT_KNEE),
    (RIGHT_SHOULDER, RIGHT_HIP, RIGHT_KNEE),
)

JointAngles = Tuple[int, int, int, int]


def _is_missing(point, min_visibility: float) -> bool:
    # x == 0 is how the normalizer marks a dropped joint
    return point[0] == 0 or point[3] < min_visibility


def joint_angle_or_none(a, b, c, min_visibility: float = DEFAULT_ANGLE_VISIBILITY) -> Optional[int]:
    """
    Angle at vertex b of the a-b-c chain in whole degrees.

    Points are (x, y, z, visibility) rows. Returns None when a point is missing
    or the geometry is degenerate (coincident points).
    """
    try:
        if _is_missing(a, min_visibility) or _is_missing(b, min_visibility) or _is_missing(c, min_visibility):
            return None

        ba = np.asarray(a[:3], dtype=np.float64) - np.asarray(b[:3], dtype=np.float64)
        bc = np.asarray(c[:3], dtype=np.float64) - np.asarray(b[:3], dtype=np.float64)
        norm_ba = float(np.linalg.norm(ba))
        norm_bc = float(np.linalg.norm(bc))
        if not norm_ba >= MIN_VECTOR_NORM or not norm_bc >= MIN_VECTOR_NORM:
            return None

        cosine = float(np.dot(ba, bc)) / (norm_ba * norm_bc)
        angle = float(np.degrees(np.arccos(np.clip(cosine, -1.0, 1.0))))
        if not np.isfinite(angle):
            return None
        return int(round(angle))
    except (IndexError, TypeError, ValueError) as exc:
        logger.debug("Joint angle computation failed: %s", exc)
        return None


def compute_joint_angle(a, b, c, min_visibility: float = DEFAULT_ANGLE_VISIBILITY) -> int:
    """Same as joint_angle_or_none but folds every failure into 0 degrees."""
    angle = joint_angle_or_none(a, b, c, min_visibility)
    return 0 if angle is None else angle


def extract_joint_angles(frame: np.ndarray, min_visibility: float = DEFAULT_ANGLE_VISIBILITY) -> JointAngles:
    """(left elbow, right elbow, left knee, right knee) for one normalized frame."""
    try:
        return tuple(
            compute_joint_angle(frame[i], frame[j], frame[k], min_visibility)
            for i, j, k in CLASSIFIER_ANGLE_TRIPLES
        )
    except (IndexError, TypeError) as exc:
        logger.debug("Frame has no usable joints: %s", exc)
        return (0, 0, 0, 0)


def knee_angles(frame: np.ndarray, min_visibility: float = DEFAULT_ANGLE_VISIBILITY):
    return tuple(joint_angle_or_none(frame[i], frame[j], frame[k], min_visibility) for i, j, k in KNEE_TRIPLES)


def hip_angles(frame: np.ndarray, min_visibility: float = DEFAULT_ANGLE_VISIBILITY):
    return tuple(joint_angle_or_none(frame[i], frame[j], frame[k], min_visibility) for i, j, k in HIP_TRIPLES)
