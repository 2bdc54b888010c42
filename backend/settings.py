"""
Runtime configuration for the FitTrack signal pipeline.

Every threshold the pipeline uses lives in PipelineSettings so a session can be
tuned without touching the stages themselves. Values can be overridden from the
environment (FITTRACK_WINDOW_SIZE=100, FITTRACK_LABELS="A,B,C", ...).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

FOUR_CLASS_LABELS = ["TreePose", "Lunges", "Push-Up", "Squat"]
FIVE_CLASS_LABELS = ["TreePose", "Lunges", "Push-Up", "Squat", "Barbell Biceps Curl"]

WINDOW_POLICIES = ("sliding", "clear_on_consume")

ENV_PREFIX = "FITTRACK_"


def _parse_labels(raw: str) -> List[str]:
    if raw.strip().lower() in ("5", "five"):
        return list(FIVE_CLASS_LABELS)
    if raw.strip().lower() in ("4", "four"):
        return list(FOUR_CLASS_LABELS)
    return [label.strip() for label in raw.split(",") if label.strip()]


@dataclass
class PipelineSettings:
    # --- Frame normalization ---
    num_landmarks: int = 33
    visibility_threshold: float = 0.3
    angle_visibility_threshold: float = 0.5

    # --- Window / classifier ---
    window_size: int = 50
    window_policy: str = "sliding"
    inference_interval: float = 0.2   # seconds between classifier calls
    classifier_confidence: float = 0.4
    labels: List[str] = field(default_factory=lambda: list(FOUR_CLASS_LABELS))

    # --- Exercise switching ---
    switch_confidence: float = 0.6
    switch_frames: int = 10
    standing_angle: float = 160.0

    # --- Rep counting ---
    calibration_frames: int = 30
    down_threshold: float = 0.2
    up_threshold: float = 0.1
    min_rep_interval: float = 0.5     # seconds
    min_hip_knee_span: float = 0.15
    min_knee_ankle_span: float = 0.1

    # Process every Nth incoming frame.
    frame_stride: int = 1

    def validate(self) -> "PipelineSettings":
        if self.num_landmarks <= 0:
            raise ValueError("num_landmarks must be positive.")
        if self.window_size <= 0:
            raise ValueError("window_size must be positive.")
        if self.window_policy not in WINDOW_POLICIES:
            raise ValueError(
                f"Unknown window policy '{self.window_policy}'. "
                f"Available options: {', '.join(WINDOW_POLICIES)}"
            )
        for name in (
                "visibility_threshold",
                "angle_visibility_threshold",
                "classifier_confidence",
                "switch_confidence",
        ):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be within [0, 1].")
        if self.switch_confidence < self.classifier_confidence:
            raise ValueError("switch_confidence cannot be below classifier_confidence.")
        if self.inference_interval < 0:
            raise ValueError("inference_interval cannot be negative.")
        if not self.labels:
            raise ValueError("At least one exercise label is required.")
        if self.switch_frames < 1:
            raise ValueError("switch_frames must be at least 1.")
        if self.calibration_frames < 1:
            raise ValueError("calibration_frames must be at least 1.")
        if self.up_threshold >= self.down_threshold:
            raise ValueError("up_threshold must be below down_threshold (hysteresis).")
        if self.frame_stride < 1:
            raise ValueError("frame_stride must be at least 1.")
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["labels"] = list(self.labels)
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PipelineSettings":
        known = {f.name for f in fields(PipelineSettings)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if "labels" in kwargs and isinstance(kwargs["labels"], str):
            kwargs["labels"] = _parse_labels(kwargs["labels"])
        return PipelineSettings(**kwargs).validate()

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Dict[str, str]] = None) -> "PipelineSettings":
        """Build settings from defaults overridden by PREFIX_<FIELD> variables."""
        env = os.environ if environ is None else environ
        settings = cls()
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is None:
                continue
            current = getattr(settings, f.name)
            if f.name == "labels":
                value: Any = _parse_labels(raw)
            elif isinstance(current, bool):
                value = raw.strip().lower() in ("1", "true", "yes", "on")
            elif isinstance(current, int):
                value = int(raw)
            elif isinstance(current, float):
                value = float(raw)
            else:
                value = raw.strip().lower()
            setattr(settings, f.name, value)
        return settings.validate()
