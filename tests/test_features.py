# tests/test_features.py
#
# Per-frame features: finite differences, dt handling, missing joints,
# handedness and the matrix/column helpers.

import numpy as np
import pytest

from swingcore.config import MIN_DT
from swingcore.features import (
    FEATURE_KEYS,
    extract_movement_features,
    feature_matrix,
    features_to_columns,
    stack_columns,
)
from swingcore.joints import JOINT_INDEX_BY_NAME
from swingcore.pose import Frame, Pose

from conftest import stick_figure_array


def _frames_with_wrist(ys, ts, joint="right_wrist"):
    out = []
    for y, t in zip(ys, ts):
        xyz = stick_figure_array()
        if y is None:
            xyz[JOINT_INDEX_BY_NAME[joint]] = np.nan
        else:
            xyz[JOINT_INDEX_BY_NAME[joint], 1] = y
        out.append(Frame(t, Pose.from_array(xyz)))
    return out


def test_empty_input_gives_empty_output():
    assert extract_movement_features([]) == []


def test_one_feature_per_frame_and_first_frames_zero(swing_frames):
    feats = extract_movement_features(swing_frames, fps=30)
    assert len(feats) == len(swing_frames)
    assert feats[0].hand_speed == 0.0
    assert feats[0].hand_accel == 0.0
    assert feats[1].hand_accel == 0.0
    assert [f.t for f in feats] == [fr.timestamp for fr in swing_frames]


def test_speed_and_signed_accel():
    frames = _frames_with_wrist([2.0, 2.5, 2.25], [0.0, 0.1, 0.2])
    feats = extract_movement_features(frames, dt=0.1)
    assert feats[1].hand_speed == pytest.approx(5.0)
    assert feats[2].hand_speed == pytest.approx(2.5)
    assert feats[2].hand_accel == pytest.approx(-75.0)
    assert [f.hand_y for f in feats] == [2.0, 2.5, 2.25]


def test_dt_defaults_to_fps_then_30():
    frames = _frames_with_wrist([2.0, 2.5], [0.0, 0.0])
    assert extract_movement_features(frames)[1].hand_speed == pytest.approx(0.5 * 30.0)
    assert extract_movement_features(frames, fps=60)[1].hand_speed == pytest.approx(0.5 * 60.0)


def test_zero_dt_is_floored():
    frames = _frames_with_wrist([2.0, 2.5], [0.0, 0.0])
    feats = extract_movement_features(frames, dt=0.0)
    assert feats[1].hand_speed == pytest.approx(0.5 / MIN_DT)
    assert np.isfinite(feats[1].hand_speed)


def test_missing_wrist_zeroes_dependent_features():
    frames = _frames_with_wrist([2.0, None, 2.5, 2.75], [0.0, 0.1, 0.2, 0.3])
    feats = extract_movement_features(frames, dt=0.1)
    assert feats[1].hand_y == 0.0
    assert feats[1].hand_dist == 0.0
    assert feats[1].hand_speed == 0.0
    # speed needs the previous sample, accel the previous two
    assert feats[2].hand_speed == 0.0
    assert feats[3].hand_speed == pytest.approx(2.5)
    assert feats[3].hand_accel == 0.0


def test_handedness_selects_wrist():
    xyz = stick_figure_array()
    xyz[JOINT_INDEX_BY_NAME["right_wrist"], 1] = 9.0
    frames = [Frame(0.0, Pose.from_array(xyz))]
    assert extract_movement_features(frames, handedness="R")[0].hand_y == 9.0
    assert extract_movement_features(frames, handedness="L")[0].hand_y == 2.0
    with pytest.raises(ValueError):
        extract_movement_features(frames, handedness="X")


def test_upright_rotations(stick_pose):
    f = extract_movement_features([Frame(0.0, stick_pose)])[0]
    assert f.torso_rot == pytest.approx(0.0)
    assert f.hip_rotation == pytest.approx(-90.0)
    assert f.shoulder_rotation == pytest.approx(0.0)
    # right wrist (-2, 2) to right shoulder (-1.5, 0)
    assert f.hand_dist == pytest.approx(np.hypot(0.5, 2.0))


def test_feature_matrix_and_columns(swing_frames):
    feats = extract_movement_features(swing_frames, fps=30)
    X = feature_matrix(feats, ["hand_y", "hand_speed"])
    assert X.shape == (len(feats), 2)
    cols = features_to_columns(feats)
    assert set(cols) == {"t", *FEATURE_KEYS}
    np.testing.assert_allclose(cols["hand_y"], X[:, 0])
    assert feature_matrix([], ["hand_y"]).shape == (0, 1)


def test_stack_columns_fills_missing_with_zeros():
    mat = stack_columns({"a": [1.0, 2.0], "b": [3.0, 4.0]}, ["b", "missing", "a"])
    np.testing.assert_array_equal(mat, [[3.0, 0.0, 1.0], [4.0, 0.0, 2.0]])
