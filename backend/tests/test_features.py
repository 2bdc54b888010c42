import numpy as np

from features import assemble_features
from pose_factory import bent_frame, standing_frame


def test_shape_and_dtype():
    frames = [standing_frame() for _ in range(50)]
    tensor = assemble_features(frames, window_size=50)
    assert tensor.shape == (1, 50, 33, 8)
    assert tensor.dtype == np.float32


def test_landmarks_and_broadcast_angles():
    frame = bent_frame()
    tensor = assemble_features([frame] * 4, window_size=4)
    np.testing.assert_array_equal(tensor[0, 0, :, :4], frame)
    angle_block = tensor[0, 0, :, 4:]
    # same four angles repeated on every joint
    assert (angle_block == angle_block[0]).all()
    assert angle_block[0, 0] == np.float32(180 / 180.0)
    assert 0.5 < angle_block[0, 2] < 0.7


def test_short_window_is_zero_padded_at_tail():
    tensor = assemble_features([standing_frame()] * 3, window_size=5)
    assert tensor[0, :3].any(axis=(1, 2)).all()
    assert not tensor[0, 3:].any()


def test_long_window_keeps_most_recent_frames():
    frames = [standing_frame(hip_y=0.3 + 0.01 * i) for i in range(8)]
    tensor = assemble_features(frames, window_size=5)
    np.testing.assert_array_equal(tensor[0, 0, :, :4], frames[3])
    np.testing.assert_array_equal(tensor[0, 4, :, :4], frames[7])


def test_deterministic_and_pure():
    frames = [bent_frame(), standing_frame(), bent_frame(hip_y=0.55)]
    before = [f.copy() for f in frames]
    first = assemble_features(frames, window_size=3)
    second = assemble_features(frames, window_size=3)
    assert first.tobytes() == second.tobytes()
    for f, b in zip(frames, before):
        np.testing.assert_array_equal(f, b)
    assert not first.flags.writeable
