# swingcore/pose.py
# Fixed-layout pose record: one slot per known joint, NaN = not detected.
#
# A Pose is immutable once captured. Lookups go through `Pose.get`, which
# returns None for joints that are absent or below the visibility threshold,
# so every consumer handles "missing" explicitly instead of reading zeros.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from swingcore.config import VISIBILITY_THRESHOLD
from swingcore.joints import JOINT_NAMES, NUM_JOINTS, JointKey, joint_index


def _read_only(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


def _landmark_xyzv(raw: Any) -> tuple:
    """Accept {x,y,z,visibility|v} dicts, objects with x/y/z attributes, or tuples."""
    if raw is None:
        return (np.nan, np.nan, np.nan, 0.0)
    if isinstance(raw, Mapping):
        vis = raw.get("visibility", raw.get("v", 1.0))
        return (
            float(raw.get("x", np.nan)),
            float(raw.get("y", np.nan)),
            float(raw.get("z", 0.0)),
            1.0 if vis is None else float(vis),
        )
    if hasattr(raw, "x") and hasattr(raw, "y"):
        return (
            float(raw.x),
            float(raw.y),
            float(getattr(raw, "z", 0.0)),
            float(getattr(raw, "visibility", 1.0)),
        )
    vals = [float(x) for x in raw]
    if len(vals) == 2:
        return (vals[0], vals[1], 0.0, 1.0)
    if len(vals) == 3:
        return (vals[0], vals[1], vals[2], 1.0)
    if len(vals) >= 4:
        return (vals[0], vals[1], vals[2], vals[3])
    raise ValueError(f"Cannot interpret landmark {raw!r}")


@dataclass(frozen=True, eq=False)
class Pose:
    """
    Full joint set for one instant.

    xyz:         (33, 3) float array, NaN rows for undetected joints
    visibility:  (33,) float array in [0, 1]
    min_visibility: joints below this are reported missing by `get`
    """
    xyz: np.ndarray
    visibility: np.ndarray
    min_visibility: float = VISIBILITY_THRESHOLD

    def __post_init__(self) -> None:
        xyz = np.array(self.xyz, dtype=np.float64)
        if xyz.ndim != 2 or xyz.shape[0] != NUM_JOINTS or xyz.shape[1] not in (2, 3):
            raise ValueError(f"Pose xyz must be ({NUM_JOINTS}, 3), got {xyz.shape}")
        if xyz.shape[1] == 2:
            xyz = np.hstack([xyz, np.zeros((NUM_JOINTS, 1))])
        vis = np.array(self.visibility, dtype=np.float64).reshape(-1)
        if vis.shape[0] != NUM_JOINTS:
            raise ValueError(f"Pose visibility must be ({NUM_JOINTS},), got {vis.shape}")
        vis = np.clip(np.nan_to_num(vis, nan=0.0, posinf=0.0, neginf=0.0), 0.0, 1.0)
        object.__setattr__(self, "xyz", _read_only(xyz))
        object.__setattr__(self, "visibility", _read_only(vis))

    # ---- constructors ----

    @classmethod
    def from_array(
        cls,
        xyz: np.ndarray,
        visibility: Optional[np.ndarray] = None,
        min_visibility: float = VISIBILITY_THRESHOLD,
    ) -> "Pose":
        xyz = np.asarray(xyz, dtype=np.float64)
        if visibility is None:
            visibility = np.ones(xyz.shape[0], dtype=np.float64)
        return cls(xyz=xyz, visibility=visibility, min_visibility=min_visibility)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Any],
        min_visibility: float = VISIBILITY_THRESHOLD,
    ) -> "Pose":
        """Build from {joint_name: {x, y, z, visibility}}; unknown names are ignored."""
        xyz = np.full((NUM_JOINTS, 3), np.nan, dtype=np.float64)
        vis = np.zeros(NUM_JOINTS, dtype=np.float64)
        for name, raw in mapping.items():
            try:
                j = joint_index(name)
            except KeyError:
                continue
            x, y, z, v = _landmark_xyzv(raw)
            xyz[j] = (x, y, z)
            vis[j] = v
        return cls(xyz=xyz, visibility=vis, min_visibility=min_visibility)

    @classmethod
    def from_landmarks(
        cls,
        landmarks: Sequence[Any],
        min_visibility: float = VISIBILITY_THRESHOLD,
    ) -> "Pose":
        """
        Build from a detector's landmark list. Landmarks carrying a `name`
        are placed by name; otherwise list position is the joint index.
        """
        if landmarks and isinstance(landmarks[0], Mapping) and "name" in landmarks[0]:
            return cls.from_mapping({lm["name"]: lm for lm in landmarks}, min_visibility)
        xyz = np.full((NUM_JOINTS, 3), np.nan, dtype=np.float64)
        vis = np.zeros(NUM_JOINTS, dtype=np.float64)
        for j, raw in enumerate(list(landmarks)[:NUM_JOINTS]):
            x, y, z, v = _landmark_xyzv(raw)
            xyz[j] = (x, y, z)
            vis[j] = v
        return cls(xyz=xyz, visibility=vis, min_visibility=min_visibility)

    # ---- access ----

    def get(self, key: JointKey) -> Optional[np.ndarray]:
        j = joint_index(key)
        p = self.xyz[j]
        if not np.isfinite(p).all() or self.visibility[j] < self.min_visibility:
            return None
        return p

    def has(self, *keys: JointKey) -> bool:
        return all(self.get(k) is not None for k in keys)

    def __getitem__(self, key: JointKey) -> Optional[np.ndarray]:
        return self.get(key)

    def present_mask(self) -> np.ndarray:
        return np.isfinite(self.xyz).all(axis=1) & (self.visibility >= self.min_visibility)

    def to_mapping(self) -> Dict[str, Dict[str, float]]:
        out: Dict[str, Dict[str, float]] = {}
        for j, name in enumerate(JOINT_NAMES):
            if not np.isfinite(self.xyz[j]).all():
                continue
            x, y, z = (float(v) for v in self.xyz[j])
            out[name] = {"x": x, "y": y, "z": z, "visibility": float(self.visibility[j])}
        return out

    def with_points(self, xyz: np.ndarray) -> "Pose":
        """Copy with replaced coordinates (same visibility/threshold)."""
        return Pose(xyz=xyz, visibility=self.visibility, min_visibility=self.min_visibility)


@dataclass(frozen=True)
class Frame:
    """One timestamped pose. Timestamps are ms or s, consistent within a stream."""
    timestamp: float
    pose: Pose

    @property
    def t(self) -> float:
        return self.timestamp


def frames_from_dicts(items: Iterable[Mapping[str, Any]]) -> List[Frame]:
    """
    Build frames from [{"t"|"timestamp": ..., "pose": {name: {...}}}] or
    [{"timestamp": ..., "keypoints": [...]}] records.
    """
    frames: List[Frame] = []
    for item in items:
        ts = item.get("timestamp", item.get("t", 0.0))
        if "pose" in item:
            raw = item["pose"]
            pose = raw if isinstance(raw, Pose) else Pose.from_mapping(raw)
        elif "keypoints" in item:
            pose = Pose.from_landmarks(item["keypoints"])
        elif "landmarks" in item:
            pose = Pose.from_landmarks(item["landmarks"])
        else:
            raise KeyError(f"Frame record needs 'pose', 'keypoints' or 'landmarks'; got {sorted(item)}")
        frames.append(Frame(timestamp=float(ts), pose=pose))
    return frames


__all__ = ["Pose", "Frame", "frames_from_dicts"]
