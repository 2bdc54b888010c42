"""
Classifier input assembly.

Turns a window of normalized frames into the [1, N, 33, 8] float32 tensor the
exercise model expects: per joint (x, y, z, visibility) followed by the
frame's four joint angles scaled to [0, 1]. The angles are repeated on every
joint so each node of the model sees the global pose state.
"""

from typing import Sequence

import numpy as np

from kinematics import DEFAULT_ANGLE_VISIBILITY, extract_joint_angles
from landmarks import LANDMARK_FIELDS, NUM_LANDMARKS

NUM_ANGLES = 4
FEATURES_PER_JOINT = LANDMARK_FIELDS + NUM_ANGLES


def frame_features(frame: np.ndarray, min_visibility: float = DEFAULT_ANGLE_VISIBILITY) -> np.ndarray:
    """(33, 8) feature block for one frame."""
    num_joints = frame.shape[0]
    angles = np.asarray(extract_joint_angles(frame, min_visibility), dtype=np.float32) / np.float32(180.0)
    block = np.empty((num_joints, FEATURES_PER_JOINT), dtype=np.float32)
    block[:, :LANDMARK_FIELDS] = frame
    block[:, LANDMARK_FIELDS:] = angles
    return block


def assemble_features(
        frames: Sequence[np.ndarray],
        window_size: int,
        num_landmarks: int = NUM_LANDMARKS,
        min_visibility: float = DEFAULT_ANGLE_VISIBILITY,
) -> np.ndarray:
    """
    Build the [1, window_size, num_landmarks, 8] classifier input.

    Windows longer than window_size keep the most recent frames; shorter ones
    are zero-padded at the tail. The input frames are never modified.
    """
    frames = list(frames)[-window_size:] if window_size > 0 else []
    tensor = np.zeros((1, window_size, num_landmarks, FEATURES_PER_JOINT), dtype=np.float32)
    for t, frame in enumerate(frames):
        tensor[0, t] = frame_features(np.asarray(frame, dtype=np.float32), min_visibility)
    tensor.setflags(write=False)
    return tensor
