"""
Session state shared by the pipeline stages.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ExerciseState:
    """
    Tracked exercise and its rep count.

    current_exercise/switch_counter/candidate are owned by the switch arbiter,
    rep_count is incremented by the rep counter and zeroed on a switch.
    """
    current_exercise: Optional[str] = None
    switch_counter: int = 0
    rep_count: int = 0
    candidate: Optional[str] = None      # label switch_counter is counting toward
    last_confidence: float = 0.0

    def reset(self) -> None:
        self.current_exercise = None
        self.switch_counter = 0
        self.rep_count = 0
        self.candidate = None
        self.last_confidence = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_exercise": self.current_exercise or "none",
            "switch_counter": self.switch_counter,
            "rep_count": self.rep_count,
            "candidate": self.candidate,
            "last_confidence": self.last_confidence,
        }


@dataclass
class CalibrationState:
    """Standing hip height baseline, frozen once the frame quota is reached."""
    baseline_y: Optional[float] = None
    sample_sum: float = 0.0
    sample_count: int = 0
    is_calibrating: bool = True

    def reset(self) -> None:
        self.baseline_y = None
        self.sample_sum = 0.0
        self.sample_count = 0
        self.is_calibrating = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline_y": self.baseline_y,
            "sample_count": self.sample_count,
            "is_calibrating": self.is_calibrating,
        }
