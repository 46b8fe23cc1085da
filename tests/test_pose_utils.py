# tests/test_pose_utils.py
#
# Joint vocabulary, Pose construction/lookup and option parsing.

import numpy as np
import pytest

from swingcore.config import ComparisonOptions, DTWOptions, options_from_mapping
from swingcore.joints import JOINT_NAMES, NUM_JOINTS, RIGHT_WRIST, joint_index, side_for_handedness
from swingcore.pose import Frame, Pose, frames_from_dicts


def test_joint_vocabulary():
    assert len(JOINT_NAMES) == NUM_JOINTS == 33
    assert joint_index("right_wrist") == RIGHT_WRIST == 16
    assert joint_index(16) == 16
    with pytest.raises(KeyError):
        joint_index("right_racket")
    with pytest.raises(KeyError):
        joint_index(33)


def test_side_for_handedness():
    assert side_for_handedness("R") == "right"
    assert side_for_handedness("left") == "left"
    with pytest.raises(ValueError):
        side_for_handedness("ambidextrous")


def test_pose_from_mapping_ignores_unknown_names():
    pose = Pose.from_mapping({
        "right_wrist": {"x": 0.1, "y": 0.2, "z": 0.3, "visibility": 0.9},
        "racket_tip": {"x": 9, "y": 9, "z": 9},
    })
    np.testing.assert_allclose(pose.get("right_wrist"), [0.1, 0.2, 0.3])
    assert pose.get("left_wrist") is None
    assert pose.present_mask().sum() == 1
    assert pose.has("right_wrist") and not pose.has("right_wrist", "left_wrist")


def test_pose_visibility_threshold():
    pose = Pose.from_mapping({"nose": {"x": 0, "y": 0, "z": 0, "visibility": 0.3}})
    assert pose.get("nose") is None
    lenient = Pose.from_mapping({"nose": {"x": 0, "y": 0, "z": 0, "visibility": 0.3}}, min_visibility=0.2)
    assert lenient.get("nose") is not None


def test_pose_is_immutable(stick_pose):
    with pytest.raises(ValueError):
        stick_pose.xyz[0, 0] = 1.0
    with pytest.raises(AttributeError):
        stick_pose.min_visibility = 0.0


def test_pose_shape_validation():
    with pytest.raises(ValueError):
        Pose.from_array(np.zeros((10, 3)))
    two_d = Pose.from_array(np.ones((NUM_JOINTS, 2)))
    assert two_d.xyz.shape == (NUM_JOINTS, 3)
    assert two_d.get(0)[2] == 0.0


def test_from_landmarks_by_position_and_name():
    by_pos = Pose.from_landmarks([(0.5, 0.5, 0.0, 1.0)] * NUM_JOINTS)
    assert by_pos.present_mask().all()
    by_name = Pose.from_landmarks([{"name": "left_hip", "x": 1, "y": 2, "z": 3, "visibility": 1}])
    np.testing.assert_allclose(by_name.get("left_hip"), [1, 2, 3])


def test_to_mapping_round_trip(stick_pose):
    again = Pose.from_mapping(stick_pose.to_mapping())
    np.testing.assert_array_equal(again.xyz, stick_pose.xyz)


def test_frames_from_dicts():
    frames = frames_from_dicts([
        {"t": 0.5, "pose": {"nose": {"x": 0, "y": 0}}},
        {"timestamp": 1.0, "keypoints": [{"name": "nose", "x": 1, "y": 1, "z": 0}]},
    ])
    assert [f.t for f in frames] == [0.5, 1.0]
    assert isinstance(frames[0], Frame)
    with pytest.raises(KeyError):
        frames_from_dicts([{"t": 0.0}])


def test_options_from_mapping():
    opts = options_from_mapping({
        "minConfidence": 0.8,
        "dtwOptions": {"band": 0.3, "distanceMetric": "cosine", "smoothWindow": 3},
        "weights": {"handY": 2.0},
        "referenceWindow": "fixed",
    })
    assert opts.min_confidence == 0.8
    assert opts.dtw_options == DTWOptions(band=0.3, distance_metric="cosine", smooth_window=3)
    assert opts.weights["hand_y"] == 2.0
    assert opts.weights["torso_rot"] == 1.5
    assert opts.reference_window == "fixed"
    assert options_from_mapping(opts) is opts
    assert options_from_mapping(None) == ComparisonOptions()


def test_null_options_use_defaults():
    opts = options_from_mapping({"weights": None, "minConfidence": None, "fps": None, "dtwOptions": None})
    assert opts == ComparisonOptions()
    assert options_from_mapping({"dtwOptions": {"band": None, "weights": None}}).dtw_options == DTWOptions()
    assert ComparisonOptions(weights=None).weights == ComparisonOptions().weights


@pytest.mark.parametrize("bad", [
    {"handedness": "X"},
    {"fps": 0},
    {"fps": "fast"},
    {"min_confidence": 1.5},
    {"min_confidence": [0.5]},
    {"weights": {"hand_y": -1.0}},
    {"weights": {"hand_y": "heavy"}},
    {"weights": [1.0, 2.0]},
    {"dtw_options": {"smooth_window": True}},
])
def test_invalid_comparison_options(bad):
    with pytest.raises(ValueError):
        options_from_mapping(bad)
