"""Common interface for FitTrack landmark sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np

from landmarks import Landmark


class LandmarkSource(ABC):
    """Turns one decoded camera frame into up to 33 pose landmarks."""

    name: str = "base"
    dimension_hint: str = "2D"

    @abstractmethod
    def process_frame(self, frame_bgr: np.ndarray) -> Optional[List[Landmark]]:
        """Return landmarks in MediaPipe order, or None when no pose is found."""

    @abstractmethod
    def landmark_dict(self) -> Dict[str, int]:
        """Return a mapping from landmark name to index in the output list."""

    def close(self) -> None:
        """Release resources."""
        return None
