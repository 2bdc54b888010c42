"""Landmark source registry for FitTrack.

Lets the WebSocket server turn raw camera frames into landmarks with a
swappable estimator. Clients that already run pose detection push landmark
frames directly and never touch this package.
"""

from typing import Dict, Type

from .base import LandmarkSource
from .mediapipe_estimator import MediaPipeLandmarkSource


SOURCE_REGISTRY: Dict[str, Type[LandmarkSource]] = {
    MediaPipeLandmarkSource.name: MediaPipeLandmarkSource,
}


def get_available_sources():
    """Return the list of registered landmark source names."""
    return list(SOURCE_REGISTRY.keys())


def build_landmark_source(name: str) -> LandmarkSource:
    """Instantiate a landmark source by registry name."""
    source_cls = SOURCE_REGISTRY.get(name)
    if not source_cls:
        raise ValueError(
            f"Unknown landmark source '{name}'. "
            f"Available options: {', '.join(get_available_sources())}"
        )
    return source_cls()
