"""
MediaPipe Pose landmark source.

Provides:
- process_frame: 33 landmarks (x, y, z, visibility) for a single BGR frame.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import cv2
import mediapipe as mp
import numpy as np

from landmarks import Landmark
from .base import LandmarkSource


class MediaPipeLandmarkSource(LandmarkSource):
    """Thin wrapper around MediaPipe Pose in streaming (video) mode."""

    name = "mediapipe"
    dimension_hint = "2.5D"

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
    ):
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    @staticmethod
    def _to_landmarks(landmarks) -> List[Landmark]:
        return [
            Landmark(
                float(lm.x),
                float(lm.y),
                float(lm.z),
                float(getattr(lm, "visibility", 0.0)),
            )
            for lm in landmarks
        ]

    def process_frame(self, frame_bgr: np.ndarray) -> Optional[List[Landmark]]:
        image_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self.pose.process(image_rgb)
        if not results.pose_landmarks:
            return None
        return self._to_landmarks(results.pose_landmarks.landmark)

    def landmark_dict(self) -> Dict[str, int]:
        """Name-to-index mapping following MediaPipe PoseLandmark enumeration."""
        pl = self.mp_pose.PoseLandmark
        return {name: getattr(pl, name).value for name in dir(pl) if name.isupper()}

    def close(self) -> None:
        self.pose.close()
