import sys, os; sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# --- Shared synthetic poses for swingcore tests ---
import numpy as np
import pytest

from swingcore.joints import JOINT_INDEX_BY_NAME, NUM_JOINTS
from swingcore.pose import Frame, Pose

# Left-side joints of a stick figure standing at x=0, y down, facing +z.
# Right-side joints are the exact mirror (x -> -x). Values are dyadic so
# mirrored distances compare bit-for-bit.
_LEFT_HALF = {
    "eye_inner": (0.125, -2.0, 0.0),
    "eye": (0.25, -2.0, 0.0),
    "eye_outer": (0.375, -2.0, 0.0),
    "ear": (0.5, -1.875, 0.0),
    "shoulder": (1.5, 0.0, 0.0),
    "elbow": (2.0, 1.0, 0.0),
    "wrist": (2.0, 2.0, 0.0),
    "pinky": (2.0, 2.25, 0.0),
    "index": (2.0, 2.375, 0.0),
    "thumb": (1.875, 2.25, 0.0),
    "hip": (0.5, 3.0, 0.0),
    "knee": (0.5, 4.5, 0.0),
    "ankle": (0.75, 6.0, 0.0),
    "heel": (0.75, 6.25, -0.125),
    "foot_index": (0.75, 6.25, 0.25),
}


def stick_figure_array() -> np.ndarray:
    xyz = np.zeros((NUM_JOINTS, 3), dtype=np.float64)
    xyz[JOINT_INDEX_BY_NAME["nose"]] = (0.0, -1.75, 0.25)
    xyz[JOINT_INDEX_BY_NAME["mouth_left"]] = (0.125, -1.5, 0.125)
    xyz[JOINT_INDEX_BY_NAME["mouth_right"]] = (-0.125, -1.5, 0.125)
    for part, (x, y, z) in _LEFT_HALF.items():
        xyz[JOINT_INDEX_BY_NAME[f"left_{part}"]] = (x, y, z)
        xyz[JOINT_INDEX_BY_NAME[f"right_{part}"]] = (-x, y, z)
    return xyz


def swing_arrays(T: int = 90, amplitude: float = 0.5, lateral: float = 0.25) -> np.ndarray:
    """(T, 33, 3): the stick figure with only the right wrist tracing a smooth arc."""
    base = stick_figure_array()
    P = np.repeat(base[None], T, axis=0)
    rw = JOINT_INDEX_BY_NAME["right_wrist"]
    s = np.linspace(0.0, 1.0, T)
    P[:, rw, 1] = base[rw, 1] - amplitude * np.sin(np.pi * s) ** 2
    P[:, rw, 0] = base[rw, 0] + lateral * np.sin(2.0 * np.pi * s)
    P[:, rw, 2] = base[rw, 2] + 0.5 * lateral * s
    return P


def frames_from(P: np.ndarray, fps: float = 30.0):
    return [Frame(i / fps, Pose.from_array(P[i])) for i in range(P.shape[0])]


@pytest.fixture
def stick_pose():
    return Pose.from_array(stick_figure_array())


@pytest.fixture
def empty_pose():
    return Pose.from_mapping({})


@pytest.fixture
def swing_frames():
    """90-frame synthetic forehand-like swing at 30 fps."""
    return frames_from(swing_arrays())


@pytest.fixture
def wide_swing_frames():
    """Same timing as swing_frames, larger and faster wrist arc."""
    return frames_from(swing_arrays(T=70, amplitude=1.5, lateral=0.75))
