import numpy as np
import pytest

from classifier import (
    CallableEngine,
    ClassifierInvoker,
    InferenceFailure,
    UnavailableEngine,
    build_inference_engine,
)
from pose_factory import bent_frame
from sequence_window import SequenceWindow, WindowPolicy
from settings import FOUR_CLASS_LABELS

WINDOW = 5


class RecordingEngine(CallableEngine):
    def __init__(self, output=(0.1, 0.1, 0.1, 0.7)):
        super().__init__(self._predict)
        self.output = output
        self.tensors = []

    def _predict(self, tensor):
        self.tensors.append(tensor)
        if isinstance(self.output, Exception):
            raise self.output
        return np.asarray(self.output)[None, :]


def full_window(policy=WindowPolicy.SLIDING):
    window = SequenceWindow(WINDOW, policy)
    for _ in range(WINDOW):
        window.append(bent_frame())
    return window


def make_invoker(engine, **kwargs):
    kwargs.setdefault("interval", 0.2)
    return ClassifierInvoker(engine, FOUR_CLASS_LABELS, window_size=WINDOW, **kwargs)


def test_classifies_full_window():
    engine = RecordingEngine()
    result = make_invoker(engine).try_classify(full_window(), now=1.0, epoch=3)
    assert result.class_index == 3
    assert result.class_label == "Squat"
    assert result.confidence == pytest.approx(0.7)
    assert result.is_confident
    assert result.epoch == 3
    assert engine.tensors[0].shape == (1, WINDOW, 33, 8)


def test_not_full_window_is_skipped_without_side_effects():
    engine = RecordingEngine()
    invoker = make_invoker(engine)
    window = SequenceWindow(WINDOW)
    window.append(bent_frame())
    assert invoker.try_classify(window, now=1.0) is None
    assert invoker.last_invocation is None
    assert engine.tensors == []


def test_unloaded_engine_is_skipped():
    invoker = make_invoker(UnavailableEngine())
    assert invoker.try_classify(full_window(), now=1.0) is None
    assert invoker.last_invocation is None


def test_requests_inside_interval_are_dropped():
    engine = RecordingEngine()
    invoker = make_invoker(engine)
    window = full_window()
    assert invoker.try_classify(window, now=1.0) is not None
    assert invoker.try_classify(window, now=1.1) is None
    assert invoker.try_classify(window, now=1.25) is not None
    assert len(engine.tensors) == 2
    assert invoker.throttled == 1


def test_low_confidence_is_returned_but_not_confident():
    engine = RecordingEngine(output=(0.3, 0.25, 0.25, 0.2))
    result = make_invoker(engine).try_classify(full_window(), now=1.0)
    assert result.class_label == "TreePose"
    assert not result.is_confident


def test_clear_policy_resets_window_after_success():
    window = full_window(WindowPolicy.CLEAR_ON_CONSUME)
    assert make_invoker(RecordingEngine()).try_classify(window, now=1.0) is not None
    assert len(window) == 0

    sliding = full_window()
    make_invoker(RecordingEngine()).try_classify(sliding, now=1.0)
    assert len(sliding) == WINDOW


@pytest.mark.parametrize("output", [
    (0.5, 0.5),
    (0.1, float("nan"), 0.2, 0.7),
    "not numbers",
    RuntimeError("engine crashed"),
])
def test_inference_failures_are_contained(output):
    engine = RecordingEngine(output=output)
    invoker = make_invoker(engine)
    window = full_window(WindowPolicy.CLEAR_ON_CONSUME)
    assert invoker.try_classify(window, now=1.0) is None
    assert invoker.failures == 1
    assert len(window) == WINDOW


def test_run_raises_inference_failure():
    invoker = make_invoker(RecordingEngine(output=(1.0,)))
    request = invoker.prepare(full_window(), now=1.0)
    with pytest.raises(InferenceFailure):
        invoker.run(request)


def test_request_snapshot_ignores_later_appends():
    engine = RecordingEngine()
    invoker = make_invoker(engine)
    window = full_window()
    request = invoker.prepare(window, now=1.0)
    window.reset()
    result = invoker.run(request)
    assert result is not None
    assert engine.tensors[0][0, :, :, 3].any()
    assert not engine.tensors[0].flags.writeable


def test_engine_registry():
    assert isinstance(build_inference_engine("none"), UnavailableEngine)
    with pytest.raises(ValueError):
        build_inference_engine("onnx-gpu")
