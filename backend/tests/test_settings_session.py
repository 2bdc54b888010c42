import pytest

from session import StaleSessionError, TrackingSession
from settings import FIVE_CLASS_LABELS, PipelineSettings


def test_defaults():
    s = PipelineSettings().validate()
    assert s.window_size == 50
    assert s.labels == ["TreePose", "Lunges", "Push-Up", "Squat"]
    assert s.up_threshold < s.down_threshold


def test_from_env_overrides():
    env = {
        "FITTRACK_WINDOW_SIZE": "100",
        "FITTRACK_WINDOW_POLICY": "CLEAR_ON_CONSUME",
        "FITTRACK_INFERENCE_INTERVAL": "0.25",
        "FITTRACK_LABELS": "five",
        "UNRELATED": "x",
    }
    s = PipelineSettings.from_env(environ=env)
    assert s.window_size == 100
    assert s.window_policy == "clear_on_consume"
    assert s.inference_interval == 0.25
    assert s.labels == FIVE_CLASS_LABELS


def test_custom_label_list():
    s = PipelineSettings.from_env(environ={"FITTRACK_LABELS": "Squat, Plank"})
    assert s.labels == ["Squat", "Plank"]


@pytest.mark.parametrize("overrides", [
    {"window_size": 0},
    {"window_policy": "lifo"},
    {"up_threshold": 0.3, "down_threshold": 0.2},
    {"labels": []},
    {"frame_stride": 0},
    {"classifier_confidence": 1.5},
    {"switch_confidence": -0.1},
    {"angle_visibility_threshold": 2.0},
    {"classifier_confidence": 0.7, "switch_confidence": 0.6},
])
def test_invalid_settings(overrides):
    with pytest.raises(ValueError):
        PipelineSettings(**overrides).validate()


def test_dict_round_trip_ignores_unknown_keys():
    data = PipelineSettings(window_size=100).to_dict()
    data["legacy_field"] = 1
    assert PipelineSettings.from_dict(data).window_size == 100


def test_session_restart_bumps_epoch_and_clears_state():
    session = TrackingSession.create(PipelineSettings(window_size=3))
    session.exercise.current_exercise = "Squat"
    session.exercise.rep_count = 4
    session.calibration.is_calibrating = False
    session.calibration.baseline_y = 0.4

    epoch = session.restart()
    assert epoch == 1
    assert session.exercise.current_exercise is None
    assert session.exercise.rep_count == 0
    assert session.calibration.is_calibrating
    assert session.get_progress()["exercise"] == "none"

    with pytest.raises(StaleSessionError):
        session.check_epoch(0)
    session.check_epoch(1)


def test_session_records_exercise_history():
    session = TrackingSession.create()
    session.exercise.current_exercise = "Squat"
    session.record_switch(previous_reps=0)
    session.exercise.rep_count = 3
    session.exercise.current_exercise = "Lunges"
    session.record_switch(previous_reps=3)
    session.exercise.rep_count = 2

    data = session.to_dict()
    assert [s["exercise"] for s in data["sets"]] == ["Squat", "Lunges"]
    assert [s["completed_reps"] for s in data["sets"]] == [3, 2]
    assert data["total_reps_completed"] == 5


def test_out_of_range_env_value_is_rejected():
    with pytest.raises(ValueError):
        PipelineSettings.from_env(environ={"FITTRACK_SWITCH_CONFIDENCE": "6"}).validate()
