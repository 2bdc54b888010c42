"""
Hip-displacement rep counter driven by a standing calibration.
Counts one rep per down-and-up cycle of the hip centre, independent of which
exercise the classifier currently reports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from landmarks import LEFT_ANKLE, LEFT_HIP, LEFT_KNEE, RIGHT_ANKLE, RIGHT_HIP, RIGHT_KNEE, all_present
from models import CalibrationState, ExerciseState

logger = logging.getLogger(__name__)

REQUIRED_JOINTS = (LEFT_HIP, RIGHT_HIP, LEFT_KNEE, RIGHT_KNEE, LEFT_ANKLE, RIGHT_ANKLE)


@dataclass
class RepCounterState:
    phase: str = "CALIBRATING"  # CALIBRATING, STANDING, IN_REP
    last_rep_time: Optional[float] = None
    last_displacement: float = 0.0
    frames_skipped: int = 0


class HipRepCounter:
    """
    Calibrating -> Standing <-> InRep state machine over mean hip y.

    Image y grows downward, so a squat shows up as a positive displacement
    from the standing baseline. The down/up thresholds form a hysteresis band.
    """

    def __init__(
            self,
            calibration: CalibrationState,
            calibration_frames: int = 30,
            down_threshold: float = 0.2,
            up_threshold: float = 0.1,
            min_rep_interval: float = 0.5,
            min_hip_knee_span: float = 0.15,
            min_knee_ankle_span: float = 0.1,
    ):
        self.calibration = calibration
        self.calibration_frames = calibration_frames
        self.down_threshold = down_threshold
        self.up_threshold = up_threshold
        self.min_rep_interval = min_rep_interval
        self.min_hip_knee_span = min_hip_knee_span
        self.min_knee_ankle_span = min_knee_ankle_span
        self.state = RepCounterState()

    def reset(self, recalibrate: bool = True) -> None:
        self.state = RepCounterState()
        if recalibrate:
            self.calibration.reset()
        elif not self.calibration.is_calibrating:
            self.state.phase = "STANDING"

    def _form_ok(self, hip_y: float, knee_y: float, ankle_y: float) -> bool:
        # Both leg segments must span a real vertical distance; collapsed or
        # half-visible legs produce near-zero spans.
        return (abs(hip_y - knee_y) > self.min_hip_knee_span
                and abs(knee_y - ankle_y) > self.min_knee_ankle_span)

    def update(self, frame: np.ndarray, t: float, exercise: ExerciseState) -> bool:
        """
        Feed one normalized frame at monotonic time t (seconds).
        Returns True when this frame completed a rep.
        """
        if not all_present(frame, REQUIRED_JOINTS):
            self.state.frames_skipped += 1
            return False

        hip_y = float(frame[LEFT_HIP, 1] + frame[RIGHT_HIP, 1]) / 2.0
        knee_y = float(frame[LEFT_KNEE, 1] + frame[RIGHT_KNEE, 1]) / 2.0
        ankle_y = float(frame[LEFT_ANKLE, 1] + frame[RIGHT_ANKLE, 1]) / 2.0

        cal = self.calibration
        if cal.is_calibrating:
            cal.sample_sum += hip_y
            cal.sample_count += 1
            if cal.sample_count >= self.calibration_frames:
                cal.baseline_y = cal.sample_sum / cal.sample_count
                cal.is_calibrating = False
                self.state.phase = "STANDING"
                logger.info("Calibration complete, baseline hip y: %.3f", cal.baseline_y)
            return False

        displacement = hip_y - cal.baseline_y
        self.state.last_displacement = displacement

        if self.state.phase == "STANDING":
            if displacement > self.down_threshold and self._form_ok(hip_y, knee_y, ankle_y):
                self.state.phase = "IN_REP"
                logger.debug("Entering rep, displacement %.3f", displacement)
            return False

        if self.state.phase == "IN_REP":
            last = self.state.last_rep_time
            interval_ok = last is None or t - last >= self.min_rep_interval
            if displacement < self.up_threshold and interval_ok:
                self.state.phase = "STANDING"
                self.state.last_rep_time = t
                exercise.rep_count += 1
                logger.info("Rep completed (%d), displacement %.3f", exercise.rep_count, displacement)
                return True
        return False
