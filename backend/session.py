"""
Tracking session state for FitTrack.

One TrackingSession per capture session. It owns every piece of mutable state
the pipeline stages read and write (frame window, exercise state, calibration)
plus an epoch token that invalidates in-flight classifier results on restart.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
import time
import uuid

from models import CalibrationState, ExerciseState
from sequence_window import SequenceWindow, WindowPolicy
from settings import PipelineSettings


class StaleSessionError(RuntimeError):
    """A result belongs to an epoch that has since been reset."""


@dataclass
class ExerciseSet:
    """A stretch of the session spent on one classified exercise."""

    exercise: str
    completed_reps: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        elif self.start_time:
            return time.time() - self.start_time
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise,
            "completed_reps": self.completed_reps,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class TrackingSession:
    """
    Usage:
        session = TrackingSession.create(PipelineSettings())
        session.window.append(frame)
        ...
        session.restart()          # new epoch, everything back to initial
    """

    settings: PipelineSettings
    window: SequenceWindow
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    exercise: ExerciseState = field(default_factory=ExerciseState)
    calibration: CalibrationState = field(default_factory=CalibrationState)
    epoch: int = 0
    sets: List[ExerciseSet] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    frames_received: int = 0
    frames_processed: int = 0
    frames_failed: int = 0

    @classmethod
    def create(cls, settings: Optional[PipelineSettings] = None) -> "TrackingSession":
        settings = (settings or PipelineSettings()).validate()
        window = SequenceWindow(settings.window_size, WindowPolicy(settings.window_policy))
        return cls(settings=settings, window=window)

    # ---- lifecycle ----

    def restart(self) -> int:
        """Return to the initial state under a new epoch."""
        self.epoch += 1
        self.window.reset()
        self.exercise.reset()
        self.calibration.reset()
        self.sets = []
        self.started_at = time.time()
        return self.epoch

    def recalibrate(self) -> int:
        """Redo the standing calibration; exercise state is discarded with it."""
        self._close_current_set()
        self.epoch += 1
        self.window.reset()
        self.exercise.reset()
        self.calibration.reset()
        return self.epoch

    def check_epoch(self, epoch: int) -> None:
        if epoch != self.epoch:
            raise StaleSessionError(f"Result from epoch {epoch}, session is at {self.epoch}.")

    # ---- exercise history ----

    @property
    def current_set(self) -> Optional[ExerciseSet]:
        if self.sets and self.sets[-1].end_time is None:
            return self.sets[-1]
        return None

    def _close_current_set(self) -> None:
        current = self.current_set
        if current:
            current.completed_reps = self.exercise.rep_count
            current.end_time = time.time()

    def record_switch(self, previous_reps: int) -> ExerciseSet:
        """Close the running set with its final rep count and open one for the new exercise."""
        current = self.current_set
        if current:
            current.completed_reps = previous_reps
            current.end_time = time.time()
        new_set = ExerciseSet(exercise=self.exercise.current_exercise, start_time=time.time())
        self.sets.append(new_set)
        return new_set

    def sync_current_set(self) -> None:
        current = self.current_set
        if current:
            current.completed_reps = self.exercise.rep_count

    @property
    def total_reps_completed(self) -> int:
        return sum(s.completed_reps for s in self.sets)

    @property
    def duration_seconds(self) -> float:
        return time.time() - self.started_at

    # ---- observable projections ----

    def get_progress(self) -> Dict[str, Any]:
        """Read-only view for presentation layers."""
        return {
            "session_id": self.id,
            "epoch": self.epoch,
            "exercise": self.exercise.current_exercise or "none",
            "rep_count": self.exercise.rep_count,
            "confidence": self.exercise.last_confidence,
            "is_calibrating": self.calibration.is_calibrating,
            "baseline_y": self.calibration.baseline_y,
            "switch_counter": self.exercise.switch_counter,
            "window_fill": len(self.window),
            "window_size": self.window.capacity,
        }

    def to_dict(self) -> Dict[str, Any]:
        self.sync_current_set()
        return {
            "id": self.id,
            "epoch": self.epoch,
            "exercise": self.exercise.to_dict(),
            "calibration": self.calibration.to_dict(),
            "sets": [s.to_dict() for s in self.sets],
            "total_reps_completed": self.total_reps_completed,
            "frames_received": self.frames_received,
            "frames_processed": self.frames_processed,
            "frames_failed": self.frames_failed,
            "duration_seconds": self.duration_seconds,
            "settings": self.settings.to_dict(),
        }
