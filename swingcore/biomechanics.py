# swingcore/biomechanics.py
#
# Instantaneous joint angles and windowed movement-quality scores.
#
# Every function here is total: missing joints or too-short windows give the
# neutral value (0) instead of raising. Streaming input drops joints all the
# time; one bad frame must never abort the pipeline.
#
# Coordinate convention (MediaPipe): x right, y DOWN, z toward camera.
# "Horizontal" therefore means the x/z ground plane and "up" is -y.

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from swingcore.config import (
    EPS,
    DEFAULT_FPS,
    FLUIDITY_ACCEL_SCALE,
    FLUIDITY_SMOOTH_WINDOW,
    KNEE_OPTIMAL_FLEXION,
    MIN_FRAMES_QUALITY,
    MIN_FRAMES_STABILITY,
    STABILITY_VARIANCE_SCALE,
)
from swingcore.joints import (
    ARM_CHAIN,
    LEFT_ANKLE, RIGHT_ANKLE,
    LEFT_HIP, RIGHT_HIP,
    LEFT_KNEE, RIGHT_KNEE,
    LEFT_SHOULDER, RIGHT_SHOULDER,
    SYMMETRY_PAIRS,
    JointKey,
)
from swingcore.pose import Pose

UP = np.array([0.0, -1.0, 0.0])


# ========= Small records =========

@dataclass(frozen=True)
class JointAngles:
    knee_r: float
    knee_l: float
    elbow: float
    shoulder_abd: float
    wrist: float
    x_factor: float
    trunk_tilt: float
    hand_height: float
    hand_body_dist: float
    shoulder_rotation: float
    hip_rotation: float
    knee_stability: float
    ankle_flexion: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class MovementQuality:
    stability: float = 0.0
    symmetry: float = 0.0
    fluidity: float = 0.0
    balance: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


# ========= Vector helpers =========

def _angle_rad(u: np.ndarray, v: np.ndarray) -> float:
    nu = float(np.linalg.norm(u))
    nv = float(np.linalg.norm(v))
    if nu < EPS or nv < EPS:
        return 0.0
    cosang = float(np.clip(np.dot(u, v) / (nu * nv), -1.0, 1.0))
    return float(np.arccos(cosang))


def _angle_deg(u: np.ndarray, v: np.ndarray) -> float:
    return float(np.degrees(_angle_rad(u, v)))


def _xz(v: np.ndarray) -> np.ndarray:
    return np.array([v[0], v[2]], dtype=np.float64)


def _midpoint(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if a is None or b is None:
        return None
    return 0.5 * (a + b)


def wrap_degrees(deg: float) -> float:
    """Wrap an angle to (-180, 180]."""
    w = (deg + 180.0) % 360.0 - 180.0
    return 180.0 if w == -180.0 else float(w)


def heading_deg(v: np.ndarray) -> float:
    """Signed heading of a 3D vector's ground projection, 0 = forward (+z)."""
    h = _xz(v)
    if float(np.linalg.norm(h)) < EPS:
        return 0.0
    return float(np.degrees(np.arctan2(h[0], h[1])))


# ========= Angles =========

def angle_at(p: Optional[np.ndarray], q: Optional[np.ndarray], r: Optional[np.ndarray]) -> float:
    """Angle p-q-r at vertex q, degrees in [0, 180]; 0 if any point is missing or degenerate."""
    if p is None or q is None or r is None:
        return 0.0
    return _angle_deg(np.asarray(p, float) - q, np.asarray(r, float) - q)


def x_factor(pose: Pose) -> float:
    """Hip line vs shoulder line, both projected onto the ground plane (degrees)."""
    lh, rh = pose.get(LEFT_HIP), pose.get(RIGHT_HIP)
    ls, rs = pose.get(LEFT_SHOULDER), pose.get(RIGHT_SHOULDER)
    if lh is None or rh is None or ls is None or rs is None:
        return 0.0
    return _angle_deg(_xz(rh - lh), _xz(rs - ls))


def trunk_tilt(pose: Pose) -> float:
    """Torso (mid-hip -> neck) vs vertical, degrees. Neck = shoulder midpoint, else left shoulder."""
    mid_hip = _midpoint(pose.get(LEFT_HIP), pose.get(RIGHT_HIP))
    if mid_hip is None:
        return 0.0
    neck = _midpoint(pose.get(LEFT_SHOULDER), pose.get(RIGHT_SHOULDER))
    if neck is None:
        neck = pose.get(LEFT_SHOULDER)
    if neck is None:
        return 0.0
    return _angle_deg(neck - mid_hip, UP)


def signed_shoulder_rotation(pose: Pose, side: str = "right") -> float:
    """Upper arm heading relative to the shoulder line, signed degrees in (-180, 180]."""
    sh, el = ARM_CHAIN[side][0], ARM_CHAIN[side][1]
    ls, rs, e, s = pose.get(LEFT_SHOULDER), pose.get(RIGHT_SHOULDER), pose.get(el), pose.get(sh)
    if ls is None or rs is None or e is None or s is None:
        return 0.0
    line, arm = rs - ls, e - s
    if float(np.linalg.norm(_xz(line))) < EPS or float(np.linalg.norm(_xz(arm))) < EPS:
        return 0.0
    return wrap_degrees(heading_deg(arm) - heading_deg(line))


def signed_hip_rotation(pose: Pose) -> float:
    """Hip line heading relative to forward (+z), signed degrees in (-180, 180]."""
    lh, rh = pose.get(LEFT_HIP), pose.get(RIGHT_HIP)
    if lh is None or rh is None:
        return 0.0
    return wrap_degrees(heading_deg(rh - lh))


def shoulder_rotation(pose: Pose, side: str = "right") -> float:
    """Unsigned shoulder-line vs arm angle in the ground plane, degrees in [0, 180]."""
    return abs(signed_shoulder_rotation(pose, side))


def hip_rotation(pose: Pose) -> float:
    """Unsigned hip-line vs forward angle in the ground plane, degrees in [0, 180]."""
    return abs(signed_hip_rotation(pose))


def knee_stability(pose: Pose) -> float:
    """
    1 at the optimal knee flexion ratio, falling linearly to 0.
    ratio = |hip_y - knee_y| / |hip_y| using left/right midpoints.
    """
    knee = _midpoint(pose.get(LEFT_KNEE), pose.get(RIGHT_KNEE))
    hip = _midpoint(pose.get(LEFT_HIP), pose.get(RIGHT_HIP))
    if knee is None or hip is None:
        return 0.0
    hip_h, knee_h = float(hip[1]), float(knee[1])
    if abs(hip_h) < EPS:
        return 0.0
    actual = abs(hip_h - knee_h) / abs(hip_h)
    return float(max(0.0, 1.0 - abs(actual - KNEE_OPTIMAL_FLEXION) / KNEE_OPTIMAL_FLEXION))


def ankle_flexion(pose: Pose, side: str = "right") -> float:
    """Knee -> ankle segment vs vertical, degrees."""
    _, _, _, _, kn, an = ARM_CHAIN[side]
    k, a = pose.get(kn), pose.get(an)
    if k is None or a is None:
        return 0.0
    return _angle_deg(a - k, UP)


def compute_angles(pose: Pose, side: str = "right") -> JointAngles:
    """Bundle of instantaneous angles for the dominant `side`; each entry is null-safe."""
    sh, el, wr, hp, _, _ = ARM_CHAIN[side]
    s, e, w, h = pose.get(sh), pose.get(el), pose.get(wr), pose.get(hp)
    wrist_ref = None if w is None else w + np.array([1.0, 0.0, 0.0])
    return JointAngles(
        knee_r=angle_at(pose.get(RIGHT_HIP), pose.get(RIGHT_KNEE), pose.get(RIGHT_ANKLE)),
        knee_l=angle_at(pose.get(LEFT_HIP), pose.get(LEFT_KNEE), pose.get(LEFT_ANKLE)),
        elbow=angle_at(s, e, w),
        shoulder_abd=angle_at(h, s, e),
        wrist=angle_at(e, w, wrist_ref),
        x_factor=x_factor(pose),
        trunk_tilt=trunk_tilt(pose),
        hand_height=float(w[1]) if w is not None else 0.0,
        hand_body_dist=float(np.linalg.norm(w - s)) if (w is not None and s is not None) else 0.0,
        shoulder_rotation=shoulder_rotation(pose, side),
        hip_rotation=hip_rotation(pose),
        knee_stability=knee_stability(pose),
        ankle_flexion=ankle_flexion(pose, side),
    )


# ========= Window metrics =========

def calculate_symmetry(pose: Pose) -> float:
    """
    Mean over valid left/right pairs of 1 - |dL - dR| / max(dL, dR), where d is
    the distance to the hip midpoint. 0 when no pair is valid.
    """
    center = _midpoint(pose.get(LEFT_HIP), pose.get(RIGHT_HIP))
    if center is None:
        return 0.0
    total, valid = 0.0, 0
    for lj, rj in SYMMETRY_PAIRS:
        left, right = pose.get(lj), pose.get(rj)
        if left is None or right is None:
            continue
        dl = float(np.linalg.norm(left - center))
        dr = float(np.linalg.norm(right - center))
        if dl <= 0.0 or dr <= 0.0:
            continue
        total += 1.0 - abs(dl - dr) / max(dl, dr)
        valid += 1
    return total / valid if valid else 0.0


def calculate_stability(
    poses: Sequence[Pose],
    joint: JointKey,
    scale: float = STABILITY_VARIANCE_SCALE,
) -> float:
    """
    Positional variance of one joint across the window mapped to [0, 1]:
    max(0, 1 - variance / scale). Needs >= 3 frames with the joint present.
    """
    if len(poses) < MIN_FRAMES_STABILITY or scale <= 0:
        return 0.0
    pts = [p for p in (pose.get(joint) for pose in poses) if p is not None]
    if len(pts) < MIN_FRAMES_STABILITY:
        return 0.0
    arr = np.asarray(pts, dtype=np.float64)
    variance = float(np.mean(np.sum((arr - arr.mean(axis=0)) ** 2, axis=1)))
    return float(max(0.0, 1.0 - min(variance / scale, 1.0)))


def calculate_balance(poses: Sequence[Pose]) -> float:
    """
    How centered the hip midpoint sits over the ankle midpoint on the ground
    plane, relative to half the stance width (last frame of the window).
    """
    if len(poses) == 0:
        return 0.0
    last = poses[-1]
    com = _midpoint(last.get(LEFT_HIP), last.get(RIGHT_HIP))
    la, ra = last.get(LEFT_ANKLE), last.get(RIGHT_ANKLE)
    if com is None or la is None or ra is None:
        return 0.0
    base_width = float(np.linalg.norm(la - ra))
    if base_width < EPS:
        return 0.0
    offset = float(np.linalg.norm(_xz(com) - _xz(0.5 * (la + ra))))
    return float(max(0.0, 1.0 - min(offset / (0.5 * base_width), 1.0)))


def diff_series(xs: Sequence[float], dt: float) -> np.ndarray:
    """First difference / dt, same length, first entry 0."""
    x = np.asarray(xs, dtype=np.float64)
    v = np.zeros_like(x)
    if x.size > 1:
        v[1:] = np.diff(x) / dt
    return v


def diff_series2(xs: Sequence[float], dt: float) -> np.ndarray:
    return diff_series(diff_series(xs, dt), dt)


def smooth_series(xs: Sequence[float], window: int = 3) -> np.ndarray:
    """Centered moving average, window truncated at the edges."""
    x = np.asarray(xs, dtype=np.float64)
    if window <= 1 or x.size == 0:
        return x.copy()
    half = window // 2
    out = np.empty_like(x)
    for i in range(x.size):
        lo, hi = max(0, i - half), min(x.size, i + half + 1)
        out[i] = x[lo:hi].mean()
    return out


def _fluidity(poses: Sequence[Pose], wrist: int, fps: float) -> float:
    ys = [float(p[1]) for p in (pose.get(wrist) for pose in poses) if p is not None]
    if len(ys) < 3:
        return 0.0
    dt = 1.0 / fps
    y = smooth_series(ys, FLUIDITY_SMOOTH_WINDOW)
    accel = np.diff(y, n=2) / (dt * dt)
    avg = float(np.mean(np.abs(accel)))
    return float(max(0.0, 1.0 - min(avg / FLUIDITY_ACCEL_SCALE, 1.0)))


def calculate_movement_quality(
    poses: Sequence[Pose],
    fps: float = DEFAULT_FPS,
    side: str = "right",
) -> MovementQuality:
    """
    Composite window quality. Needs >= 5 frames, else all zeros.
      stability  mean stability of the dominant shoulder, elbow and wrist
      symmetry   mean per-frame symmetry
      fluidity   1 - mean |smoothed wrist-height acceleration| / scale
      balance    see calculate_balance
    """
    if len(poses) < MIN_FRAMES_QUALITY:
        return MovementQuality()
    sh, el, wr = ARM_CHAIN[side][:3]
    stability = float(np.mean([calculate_stability(poses, j) for j in (wr, el, sh)]))
    symmetry = float(np.mean([calculate_symmetry(p) for p in poses]))
    return MovementQuality(
        stability=stability,
        symmetry=symmetry,
        fluidity=_fluidity(poses, wr, fps),
        balance=calculate_balance(poses),
    )


__all__ = [
    "JointAngles", "MovementQuality",
    "wrap_degrees", "heading_deg",
    "angle_at", "x_factor", "trunk_tilt",
    "signed_shoulder_rotation", "signed_hip_rotation",
    "shoulder_rotation", "hip_rotation", "knee_stability", "ankle_flexion",
    "compute_angles",
    "calculate_symmetry", "calculate_stability", "calculate_balance",
    "diff_series", "diff_series2", "smooth_series",
    "calculate_movement_quality",
]
