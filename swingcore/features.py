"""
swingcore.features
------------------

Per-frame movement features for a pose stream.

One pass over the frames; speed and acceleration look back one and two
samples. A feature whose joints are missing is 0 for that frame.

Usage (library):
    from swingcore.features import extract_movement_features, feature_matrix
    feats = extract_movement_features(frames, fps=30)
    X = feature_matrix(feats, ["hand_y", "hand_dist", "torso_rot", "hand_speed"])
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from swingcore.biomechanics import (
    heading_deg,
    knee_stability,
    signed_hip_rotation,
    signed_shoulder_rotation,
    wrap_degrees,
)
from swingcore.config import DEFAULT_FPS, MIN_DT
from swingcore.joints import (
    ARM_CHAIN,
    LEFT_HIP, RIGHT_HIP,
    LEFT_SHOULDER, RIGHT_SHOULDER,
    side_for_handedness,
)
from swingcore.pose import Frame, Pose


# Column order used by tables and matrices
FEATURE_KEYS = (
    "hand_y",
    "hand_dist",
    "torso_rot",
    "hand_speed",
    "hand_accel",
    "shoulder_rotation",
    "hip_rotation",
    "knee_stability",
)

# Dimensions compared by the per-phase timing alignment
TIMING_KEYS = ("hand_y", "hand_dist", "torso_rot", "hand_speed")
# Dimensions compared by the whole-swing alignment
GLOBAL_KEYS = ("hand_y", "hand_dist", "torso_rot", "hand_speed", "shoulder_rotation", "hip_rotation")
# Dimensions compared by phase averages
AVERAGE_KEYS = ("hand_y", "hand_dist", "torso_rot", "shoulder_rotation", "hip_rotation", "knee_stability")


@dataclass(frozen=True)
class MovementFeatures:
    t: float
    hand_y: float
    hand_dist: float
    torso_rot: float
    hand_speed: float
    hand_accel: float
    shoulder_rotation: float
    hip_rotation: float
    knee_stability: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def torso_rotation(pose: Pose) -> float:
    """Heading of (shoulder center - hip center) on the ground plane, signed degrees."""
    lh, rh = pose.get(LEFT_HIP), pose.get(RIGHT_HIP)
    ls, rs = pose.get(LEFT_SHOULDER), pose.get(RIGHT_SHOULDER)
    if lh is None or rh is None or ls is None or rs is None:
        return 0.0
    v = 0.5 * (ls + rs) - 0.5 * (lh + rh)
    return wrap_degrees(heading_deg(v))


def _resolve_dt(dt: Optional[float], fps: Optional[float]) -> float:
    if dt is None:
        dt = 1.0 / float(fps) if fps else 1.0 / DEFAULT_FPS
    return max(float(dt), MIN_DT)


def extract_movement_features(
    frames: Sequence[Frame],
    dt: Optional[float] = None,
    fps: Optional[float] = None,
    handedness: str = "R",
) -> List[MovementFeatures]:
    """
    Convert frames into MovementFeatures, one per frame.

    dt defaults to 1/fps, and fps to 30. dt is floored at MIN_DT so duplicate
    timestamps never divide by zero.

      hand_y      dominant wrist y (0 if missing)
      hand_dist   |wrist - shoulder| in 3D (0 if either missing)
      hand_speed  |y_i - y_{i-1}| / dt, 0 for i=0 or a missing sample
      hand_accel  (y_i - 2 y_{i-1} + y_{i-2}) / dt^2, 0 for i<2 or a missing sample
    """
    if len(frames) == 0:
        return []
    step = _resolve_dt(dt, fps)
    side = side_for_handedness(handedness)
    sh, _, wr = ARM_CHAIN[side][:3]

    wrist_y: List[Optional[float]] = []
    out: List[MovementFeatures] = []
    for i, frame in enumerate(frames):
        pose = frame.pose
        w, s = pose.get(wr), pose.get(sh)
        y = float(w[1]) if w is not None else None
        wrist_y.append(y)

        speed = 0.0
        if i >= 1 and y is not None and wrist_y[i - 1] is not None:
            speed = abs(y - wrist_y[i - 1]) / step
        accel = 0.0
        if i >= 2 and y is not None and wrist_y[i - 1] is not None and wrist_y[i - 2] is not None:
            accel = (y - 2.0 * wrist_y[i - 1] + wrist_y[i - 2]) / (step * step)

        out.append(MovementFeatures(
            t=float(frame.timestamp),
            hand_y=y if y is not None else 0.0,
            hand_dist=float(np.linalg.norm(w - s)) if (w is not None and s is not None) else 0.0,
            torso_rot=torso_rotation(pose),
            hand_speed=float(speed),
            hand_accel=float(accel),
            shoulder_rotation=signed_shoulder_rotation(pose, side),
            hip_rotation=signed_hip_rotation(pose),
            knee_stability=knee_stability(pose),
        ))
    return out


def features_to_columns(features: Sequence[MovementFeatures]) -> Dict[str, np.ndarray]:
    """Column-wise view: {"t": (T,), "hand_y": (T,), ...}."""
    cols: Dict[str, np.ndarray] = {"t": np.array([f.t for f in features], dtype=np.float64)}
    for k in FEATURE_KEYS:
        cols[k] = np.array([getattr(f, k) for f in features], dtype=np.float64)
    return cols


def stack_columns(columns: Dict[str, Sequence[float]], keys: Sequence[str]) -> np.ndarray:
    """Stack named columns into a (T, K) matrix; missing keys become zero columns."""
    n = max((len(v) for v in columns.values()), default=0)
    mat = np.zeros((n, len(keys)), dtype=np.float64)
    for j, k in enumerate(keys):
        col = columns.get(k)
        if col is None:
            continue
        col = np.asarray(col, dtype=np.float64)
        mat[: len(col), j] = col
    return mat


def feature_matrix(features: Sequence[MovementFeatures], keys: Sequence[str]) -> np.ndarray:
    """(T, K) matrix of the selected feature columns."""
    if len(features) == 0:
        return np.zeros((0, len(keys)), dtype=np.float64)
    return np.array([[getattr(f, k) for k in keys] for f in features], dtype=np.float64)


__all__ = [
    "FEATURE_KEYS", "TIMING_KEYS", "GLOBAL_KEYS", "AVERAGE_KEYS",
    "MovementFeatures",
    "torso_rotation", "extract_movement_features",
    "features_to_columns", "stack_columns", "feature_matrix",
]
