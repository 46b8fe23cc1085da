from __future__ import annotations

"""
Centralized MediaPipe-style joint indices and names.

This is the single source of truth for:
- Landmark indices (33 BlazePose positions)
- Name <-> index lookups used by `swingcore.pose.Pose`
- Left/right pairs used by the symmetry metrics

All downstream code (biomechanics, features, IO) should import from here
instead of hardcoding numeric indices or joint-name strings.
"""

from typing import Dict, Tuple, Union

# Raw landmark indices (MediaPipe-style)
NOSE = 0
LEFT_EYE_INNER = 1
LEFT_EYE = 2
LEFT_EYE_OUTER = 3
RIGHT_EYE_INNER = 4
RIGHT_EYE = 5
RIGHT_EYE_OUTER = 6
LEFT_EAR = 7
RIGHT_EAR = 8
MOUTH_LEFT = 9
MOUTH_RIGHT = 10
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_ELBOW = 13
RIGHT_ELBOW = 14
LEFT_WRIST = 15
RIGHT_WRIST = 16
LEFT_PINKY = 17
RIGHT_PINKY = 18
LEFT_INDEX = 19
RIGHT_INDEX = 20
LEFT_THUMB = 21
RIGHT_THUMB = 22
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_KNEE = 25
RIGHT_KNEE = 26
LEFT_ANKLE = 27
RIGHT_ANKLE = 28
LEFT_HEEL = 29
RIGHT_HEEL = 30
LEFT_FOOT_INDEX = 31
RIGHT_FOOT_INDEX = 32

NUM_JOINTS = 33

# Names in index order; must match the pose detector's vocabulary exactly.
JOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye_inner", "left_eye", "left_eye_outer",
    "right_eye_inner", "right_eye", "right_eye_outer",
    "left_ear", "right_ear",
    "mouth_left", "mouth_right",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_pinky", "right_pinky",
    "left_index", "right_index",
    "left_thumb", "right_thumb",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
    "left_heel", "right_heel",
    "left_foot_index", "right_foot_index",
)

JOINT_NAME_BY_INDEX: Dict[int, str] = dict(enumerate(JOINT_NAMES))
JOINT_INDEX_BY_NAME: Dict[str, int] = {n: i for i, n in enumerate(JOINT_NAMES)}

# Useful joint groups
HIP_IDS = (LEFT_HIP, RIGHT_HIP)
SHOULDER_IDS = (LEFT_SHOULDER, RIGHT_SHOULDER)
KNEE_IDS = (LEFT_KNEE, RIGHT_KNEE)
ANKLE_IDS = (LEFT_ANKLE, RIGHT_ANKLE)
WRIST_IDS = (LEFT_WRIST, RIGHT_WRIST)
ELBOW_IDS = (LEFT_ELBOW, RIGHT_ELBOW)

# (left, right) pairs compared by the symmetry metric
SYMMETRY_PAIRS: Tuple[Tuple[int, int], ...] = (
    (LEFT_SHOULDER, RIGHT_SHOULDER),
    (LEFT_ELBOW, RIGHT_ELBOW),
    (LEFT_WRIST, RIGHT_WRIST),
    (LEFT_HIP, RIGHT_HIP),
    (LEFT_KNEE, RIGHT_KNEE),
    (LEFT_ANKLE, RIGHT_ANKLE),
)

# Dominant-arm chains keyed by side: (shoulder, elbow, wrist, hip, knee, ankle)
ARM_CHAIN = {
    "right": (RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST, RIGHT_HIP, RIGHT_KNEE, RIGHT_ANKLE),
    "left": (LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST, LEFT_HIP, LEFT_KNEE, LEFT_ANKLE),
}

JointKey = Union[int, str]


def joint_index(key: JointKey) -> int:
    """Resolve a joint name or index to its index; raises KeyError if unknown."""
    if isinstance(key, str):
        try:
            return JOINT_INDEX_BY_NAME[key]
        except KeyError:
            raise KeyError(f"Unknown joint name: {key!r}") from None
    idx = int(key)
    if not 0 <= idx < NUM_JOINTS:
        raise KeyError(f"Joint index out of range: {idx}")
    return idx


def side_for_handedness(handedness: str) -> str:
    """'R'/'L' (or 'right'/'left') -> 'right'/'left'."""
    h = (handedness or "").strip().lower()
    if h in ("r", "right"):
        return "right"
    if h in ("l", "left"):
        return "left"
    raise ValueError(f"Unknown handedness: {handedness!r} (expected 'R' or 'L')")


__all__ = [
    # Indices
    "NOSE",
    "LEFT_EYE_INNER", "LEFT_EYE", "LEFT_EYE_OUTER",
    "RIGHT_EYE_INNER", "RIGHT_EYE", "RIGHT_EYE_OUTER",
    "LEFT_EAR", "RIGHT_EAR",
    "MOUTH_LEFT", "MOUTH_RIGHT",
    "LEFT_SHOULDER", "RIGHT_SHOULDER",
    "LEFT_ELBOW", "RIGHT_ELBOW",
    "LEFT_WRIST", "RIGHT_WRIST",
    "LEFT_PINKY", "RIGHT_PINKY",
    "LEFT_INDEX", "RIGHT_INDEX",
    "LEFT_THUMB", "RIGHT_THUMB",
    "LEFT_HIP", "RIGHT_HIP",
    "LEFT_KNEE", "RIGHT_KNEE",
    "LEFT_ANKLE", "RIGHT_ANKLE",
    "LEFT_HEEL", "RIGHT_HEEL",
    "LEFT_FOOT_INDEX", "RIGHT_FOOT_INDEX",
    "NUM_JOINTS",
    # Groups
    "HIP_IDS", "SHOULDER_IDS", "KNEE_IDS",
    "ANKLE_IDS", "WRIST_IDS", "ELBOW_IDS",
    "SYMMETRY_PAIRS", "ARM_CHAIN",
    # Maps
    "JOINT_NAMES", "JOINT_NAME_BY_INDEX", "JOINT_INDEX_BY_NAME",
    "joint_index", "side_for_handedness",
]
