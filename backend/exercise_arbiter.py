"""
Debounced exercise switching.

The classifier verdict only replaces the tracked exercise after `switch_frames`
consecutive confident votes for the same new label, and never while the user
is standing in a neutral pose (between reps every exercise looks alike).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from classifier import ClassificationResult
from kinematics import DEFAULT_ANGLE_VISIBILITY, hip_angles, knee_angles
from landmarks import (
    LEFT_ANKLE,
    LEFT_HIP,
    LEFT_KNEE,
    LEFT_SHOULDER,
    RIGHT_ANKLE,
    RIGHT_HIP,
    RIGHT_KNEE,
    RIGHT_SHOULDER,
)
from models import ExerciseState

logger = logging.getLogger(__name__)

STANDING_REQUIRED_JOINTS = (
    LEFT_SHOULDER, RIGHT_SHOULDER,
    LEFT_HIP, RIGHT_HIP,
    LEFT_KNEE, RIGHT_KNEE,
    LEFT_ANKLE, RIGHT_ANKLE,
)


def is_standing(
        frame: Optional[np.ndarray],
        standing_angle: float = 160.0,
        min_visibility: float = DEFAULT_ANGLE_VISIBILITY,
) -> bool:
    """
    Neutral upright pose: both knees or both hips extended past standing_angle.
    Missing joints count as standing so an incomplete view never drives a switch.
    """
    if frame is None:
        return True
    try:
        for idx in STANDING_REQUIRED_JOINTS:
            if frame[idx, 0] == 0 or frame[idx, 3] < min_visibility:
                return True
        left_knee, right_knee = knee_angles(frame, min_visibility)
        left_hip, right_hip = hip_angles(frame, min_visibility)
    except (IndexError, TypeError):
        return True
    if None in (left_knee, right_knee, left_hip, right_hip):
        return True

    legs_straight = left_knee > standing_angle and right_knee > standing_angle
    hips_open = left_hip > standing_angle and right_hip > standing_angle
    return legs_straight or hips_open


@dataclass
class ArbiterDecision:
    switched: bool = False
    standing: bool = False
    ignored: bool = False


class ExerciseSwitchArbiter:
    """
    States: Undetermined (current_exercise is None) and Locked(label).

    Note: a standing frame leaves switch_counter untouched, so switch progress
    survives short pauses between reps. Resetting it here would be the
    stricter choice; left as is so paused sets still lock in.
    """

    def __init__(
            self,
            confidence_threshold: float = 0.6,
            switch_frames: int = 10,
            standing_angle: float = 160.0,
            min_visibility: float = DEFAULT_ANGLE_VISIBILITY,
    ):
        self.confidence_threshold = confidence_threshold
        self.switch_frames = switch_frames
        self.standing_angle = standing_angle
        self.min_visibility = min_visibility

    def update(
            self,
            state: ExerciseState,
            result: ClassificationResult,
            frame: Optional[np.ndarray],
            standing: Optional[bool] = None,
    ) -> ArbiterDecision:
        """
        Feed one classifier verdict. `standing` may be passed in directly,
        otherwise it is derived from `frame`.
        """
        decision = ArbiterDecision()
        state.last_confidence = result.confidence
        if not result.is_confident:
            decision.ignored = True
            return decision

        if standing is None:
            standing = is_standing(frame, self.standing_angle, self.min_visibility)
        decision.standing = standing
        if standing:
            return decision

        label = result.class_label
        if label == state.current_exercise:
            return decision

        if result.confidence <= self.confidence_threshold:
            state.switch_counter = 0
            state.candidate = None
            return decision

        if state.candidate != label:
            # a different label restarts the debounce
            state.candidate = label
            state.switch_counter = 0
        state.switch_counter += 1
        logger.debug(
            "Switch candidate %s %d/%d (%.2f)",
            label, state.switch_counter, self.switch_frames, result.confidence,
        )

        if state.switch_counter >= self.switch_frames:
            logger.info("Exercise switched: %s -> %s", state.current_exercise, label)
            state.current_exercise = label
            state.rep_count = 0
            state.switch_counter = 0
            state.candidate = None
            decision.switched = True
        return decision
