"""
Exercise classifier invocation.

The model itself is an external collaborator behind InferenceEngine: it takes
the [1, N, 33, 8] tensor built by features.assemble_features and returns one
probability per known label. ClassifierInvoker owns the policy around it:
preconditions, throttling, snapshotting, output decoding and window reset.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

import numpy as np

from features import assemble_features
from landmarks import NUM_LANDMARKS
from sequence_window import SequenceWindow

logger = logging.getLogger(__name__)


class InferenceUnavailable(RuntimeError):
    """Engine not loaded or window not ready; retry on a later cycle."""


class InferenceFailure(RuntimeError):
    """The engine raised or returned something that is not a probability vector."""


@dataclass
class ClassificationResult:
    class_index: int
    class_label: str
    confidence: float
    probabilities: List[float] = field(default_factory=list)
    is_confident: bool = False
    epoch: int = 0
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_index": self.class_index,
            "class_label": self.class_label,
            "confidence": self.confidence,
            "probabilities": list(self.probabilities),
            "is_confident": self.is_confident,
        }


@dataclass(frozen=True)
class InferenceRequest:
    """Everything one engine call needs, captured at request time."""

    frames: Tuple[np.ndarray, ...]
    epoch: int
    timestamp: float


class InferenceEngine(ABC):
    """Black-box model runner."""

    name: str = "base"

    @property
    def is_loaded(self) -> bool:
        return True

    @abstractmethod
    def predict(self, tensor: np.ndarray) -> Sequence[float]:
        """Run the model on a [1, N, 33, 8] tensor and return class probabilities."""

    def close(self) -> None:
        """Release resources."""
        return None


class UnavailableEngine(InferenceEngine):
    """Placeholder used until a model is attached; classification is skipped."""

    name = "none"

    @property
    def is_loaded(self) -> bool:
        return False

    def predict(self, tensor: np.ndarray) -> Sequence[float]:
        raise InferenceUnavailable("No exercise model is loaded.")


class CallableEngine(InferenceEngine):
    """Adapts any predict-like callable (Keras model.predict, a TFLite runner, ...)."""

    name = "callable"

    def __init__(self, predict_fn: Optional[Callable[[np.ndarray], Any]] = None):
        self.predict_fn = predict_fn

    @property
    def is_loaded(self) -> bool:
        return self.predict_fn is not None

    def predict(self, tensor: np.ndarray) -> Sequence[float]:
        if self.predict_fn is None:
            raise InferenceUnavailable("No predict function attached.")
        return self.predict_fn(tensor)


ENGINE_REGISTRY: Dict[str, Type[InferenceEngine]] = {
    UnavailableEngine.name: UnavailableEngine,
    CallableEngine.name: CallableEngine,
}


def get_available_engines():
    return list(ENGINE_REGISTRY.keys())


def build_inference_engine(name: str, **kwargs) -> InferenceEngine:
    engine_cls = ENGINE_REGISTRY.get(name)
    if not engine_cls:
        raise ValueError(
            f"Unknown inference engine '{name}'. "
            f"Available options: {', '.join(get_available_engines())}"
        )
    return engine_cls(**kwargs)


def decode_probabilities(output: Any, num_classes: int) -> np.ndarray:
    try:
        probs = np.asarray(output, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise InferenceFailure(f"Model output is not numeric: {exc}") from exc
    if probs.size != num_classes:
        raise InferenceFailure(
            f"Model returned {probs.size} scores, expected {num_classes}."
        )
    if not np.all(np.isfinite(probs)):
        raise InferenceFailure("Model returned non-finite scores.")
    return probs


class ClassifierInvoker:
    """
    Throttled bridge between the frame window and the inference engine.

    - Requires a full window and a loaded engine, otherwise does nothing.
    - At most one call per `interval` seconds; early requests are dropped.
    - Works on an immutable snapshot so the window can keep filling while the
      engine runs.
    """

    def __init__(
            self,
            engine: InferenceEngine,
            labels: Sequence[str],
            window_size: int = 50,
            interval: float = 0.2,
            confidence_threshold: float = 0.4,
            num_landmarks: int = NUM_LANDMARKS,
            angle_visibility: float = 0.5,
    ):
        self.engine = engine
        self.labels = list(labels)
        self.window_size = window_size
        self.interval = interval
        self.confidence_threshold = confidence_threshold
        self.num_landmarks = num_landmarks
        self.angle_visibility = angle_visibility
        self.last_invocation: Optional[float] = None

        # Statistics
        self.invocations = 0
        self.failures = 0
        self.throttled = 0

    def reset(self) -> None:
        self.last_invocation = None

    def prepare(self, window: SequenceWindow, now: Optional[float] = None, epoch: int = 0) -> Optional[InferenceRequest]:
        """Return a request if a call is due, else None (no side effects unless due)."""
        if not window.is_full() or not self.engine.is_loaded:
            return None
        now = time.monotonic() if now is None else now
        if self.last_invocation is not None and now - self.last_invocation < self.interval:
            self.throttled += 1
            return None
        self.last_invocation = now
        return InferenceRequest(frames=window.snapshot(), epoch=epoch, timestamp=now)

    def run(self, request: InferenceRequest) -> ClassificationResult:
        """Execute one engine call. Raises InferenceFailure on any engine problem."""
        tensor = assemble_features(
            request.frames, self.window_size, self.num_landmarks, self.angle_visibility
        )
        self.invocations += 1
        try:
            output = self.engine.predict(tensor)
        except InferenceUnavailable:
            raise
        except Exception as exc:
            self.failures += 1
            raise InferenceFailure(f"Inference engine error: {exc}") from exc
        finally:
            del tensor

        try:
            probs = decode_probabilities(output, len(self.labels))
        except InferenceFailure:
            self.failures += 1
            raise

        class_index = int(np.argmax(probs))
        confidence = float(probs[class_index])
        if logger.isEnabledFor(logging.DEBUG):
            for label, p in zip(self.labels, probs):
                logger.debug("%s: %.2f%%", label, p * 100)

        return ClassificationResult(
            class_index=class_index,
            class_label=self.labels[class_index],
            confidence=confidence,
            probabilities=[float(p) for p in probs],
            is_confident=confidence > self.confidence_threshold,
            epoch=request.epoch,
            timestamp=request.timestamp,
        )

    def try_classify(self, window: SequenceWindow, now: Optional[float] = None, epoch: int = 0) -> Optional[ClassificationResult]:
        """Synchronous prepare + run; failures are logged and yield None."""
        request = self.prepare(window, now, epoch)
        if request is None:
            return None
        try:
            result = self.run(request)
        except (InferenceFailure, InferenceUnavailable) as exc:
            logger.warning("Skipping classification cycle: %s", exc)
            return None
        window.consume()
        return result

    def get_stats(self) -> dict:
        return {
            "engine": self.engine.name,
            "engine_loaded": self.engine.is_loaded,
            "invocations": self.invocations,
            "failures": self.failures,
            "throttled": self.throttled,
        }
