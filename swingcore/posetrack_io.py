# swingcore/posetrack_io.py
# Loaders for recorded pose tracks (NPZ arrays or keypoint JSON dumps).
#
# NPZ layouts:
#   * Current:  P (T,J,3), V (T,J), meta_json (JSON string/dict-like), optional t (T,)
#   * Legacy:   kps_xyz (T,J,3), visibility (T,J), fps[...] or fps scalar
# JSON layout:
#   [{"timestamp": ms_or_s, "keypoints": [{"x","y","z","visibility","name"}, ...]}, ...]
#   or {"fps": ..., "frames": [...]} wrapping the same list.
#
# Everything returns a list of Frame plus fps; downstream code never pokes
# file internals directly.

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from swingcore.config import DEFAULT_FPS, MIN_DT
from swingcore.joints import JOINT_NAMES, NUM_JOINTS
from swingcore.pose import Frame, Pose, frames_from_dicts

logger = logging.getLogger(__name__)


def _parse_meta_json_like(raw: Any) -> Dict[str, Any]:
    """
    Best-effort parse of meta_json-like content:
      - if dict-like, return as dict
      - if bytes/str, try json.loads, else {}
      - else {}
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, np.ndarray) and raw.ndim == 0:
        raw = raw.item()
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return {}
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.debug("meta_json is not valid JSON; ignoring")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _valid_fps(v: Any) -> Optional[float]:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if np.isfinite(f) and f > MIN_DT else None


def _coerce_fps(meta: Dict[str, Any], npz: Any) -> float:
    """meta["fps"], else npz["fps"] (scalar or first element), else DEFAULT_FPS."""
    v = _valid_fps(meta.get("fps"))
    if v is not None:
        return v
    if "fps" in npz.files:
        arr = np.asarray(npz["fps"]).ravel()
        if arr.size:
            v = _valid_fps(arr[0])
            if v is not None:
                return v
    return DEFAULT_FPS


def load_posetrack_arrays(path: str) -> Tuple[np.ndarray, np.ndarray, Optional[np.ndarray], float, Dict[str, Any]]:
    """
    Load a pose-track NPZ and return (P, V, t, fps, meta).

    P:   (T, 33, 3) float64, NaN for undetected joints
    V:   (T, 33) float64 in [0, 1]
    t:   (T,) timestamps in seconds if stored, else None
    fps: float
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"PoseTrack NPZ not found: {path}")

    with np.load(path, allow_pickle=False) as d:
        files = set(d.files)
        meta: Dict[str, Any] = _parse_meta_json_like(d["meta_json"]) if "meta_json" in files else {}

        if "P" in files:
            P = d["P"].astype(np.float64)
            V = d["V"].astype(np.float64) if "V" in files else np.ones(P.shape[:2])
        elif "kps_xyz" in files:
            P = d["kps_xyz"].astype(np.float64)
            V = d["visibility"].astype(np.float64) if "visibility" in files else np.ones(P.shape[:2])
        else:
            raise KeyError(
                f"Unrecognized pose layout in '{path}'. "
                f"Expected one of: P / (kps_xyz), found {sorted(files)}"
            )

        if P.ndim != 3 or P.shape[1] != NUM_JOINTS or P.shape[2] < 2:
            raise ValueError(f"Invalid P shape in '{path}': {P.shape}, expected (T, {NUM_JOINTS}, 3)")
        T = P.shape[0]
        if V.shape != P.shape[:2]:
            logger.warning("Visibility shape %s does not match P %s in %s; assuming visible", V.shape, P.shape, path)
            V = np.ones(P.shape[:2])
        V = np.clip(np.nan_to_num(V, nan=0.0, posinf=0.0, neginf=0.0), 0.0, 1.0)

        t = d["t"].astype(np.float64).ravel() if "t" in files else None
        if t is not None and t.shape[0] != T:
            t = None

        fps = _coerce_fps(meta, d)

    meta = dict(meta)
    meta.setdefault("fps", float(fps))
    meta.setdefault("source_path", os.path.abspath(path))
    return P, V, t, float(fps), meta


def frames_from_arrays(
    P: np.ndarray,
    V: Optional[np.ndarray] = None,
    fps: float = DEFAULT_FPS,
    t: Optional[Sequence[float]] = None,
) -> List[Frame]:
    """(T, 33, 3) positions (+ optional visibility, timestamps) -> frames. Default t = i / fps seconds."""
    P = np.asarray(P, dtype=np.float64)
    if P.ndim != 3:
        raise ValueError(f"P must be (T, J, 3) arrays, got {P.shape}")
    if V is None:
        V = np.ones(P.shape[:2])
    ts = np.arange(P.shape[0]) / float(fps) if t is None else np.asarray(t, dtype=np.float64)
    return [Frame(float(ts[i]), Pose.from_array(P[i], V[i])) for i in range(P.shape[0])]


def frames_to_arrays(frames: Sequence[Frame]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Inverse of frames_from_arrays: (P, V, t)."""
    if len(frames) == 0:
        return np.zeros((0, NUM_JOINTS, 3)), np.zeros((0, NUM_JOINTS)), np.zeros(0)
    P = np.stack([np.asarray(fr.pose.xyz) for fr in frames])
    V = np.stack([np.asarray(fr.pose.visibility) for fr in frames])
    t = np.array([fr.timestamp for fr in frames], dtype=np.float64)
    return P, V, t


def load_posetrack(path: str) -> Tuple[List[Frame], float, Dict[str, Any]]:
    """Load a pose-track NPZ as (frames, fps, meta)."""
    P, V, t, fps, meta = load_posetrack_arrays(path)
    return frames_from_arrays(P, V, fps, t), fps, meta


def save_posetrack(path: str, frames: Sequence[Frame], fps: float, meta: Optional[Dict[str, Any]] = None) -> str:
    """Write frames in the current NPZ layout (P / V / t / meta_json)."""
    P, V, t = frames_to_arrays(frames)
    m = dict(meta or {})
    m["fps"] = float(fps)
    m.setdefault("landmark_names", list(JOINT_NAMES))
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    np.savez_compressed(path, P=P, V=V, t=t, meta_json=json.dumps(m))
    return path


def load_keypoint_json(path: str, fps: Optional[float] = None) -> Tuple[List[Frame], float]:
    """
    Load a keypoint JSON dump as (frames, fps). fps comes from the argument,
    the file's "fps" field, or DEFAULT_FPS, in that order.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Keypoint JSON not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        if "frames" not in raw:
            raise KeyError(f"Keypoint JSON '{path}' has no 'frames' list; found {sorted(raw)}")
        file_fps = _valid_fps(raw.get("fps"))
        items = raw["frames"]
    else:
        file_fps, items = None, raw
    return frames_from_dicts(items), float(fps or file_fps or DEFAULT_FPS)


def load_frames(path: str, fps: Optional[float] = None) -> Tuple[List[Frame], float]:
    """Dispatch on extension: .npz -> load_posetrack, .json -> load_keypoint_json."""
    if path.lower().endswith(".npz"):
        frames, file_fps, _ = load_posetrack(path)
        return frames, float(fps or file_fps)
    if path.lower().endswith(".json"):
        return load_keypoint_json(path, fps)
    raise ValueError(f"Unsupported pose file type: {path}")


def resolve_posetrack_path(arg: str, cache_dir: str = "cache") -> str:
    """
    Resolve a user-supplied identifier into an actual pose file path.

    Rules:
      - If arg is an existing file path → return as-is.
      - Else look for {cache_dir}/{arg}.posetrack.npz, then {cache_dir}/{arg}.
    """
    if os.path.isfile(arg):
        return arg
    for cand in (os.path.join(cache_dir, f"{arg}.posetrack.npz"), os.path.join(cache_dir, arg)):
        if os.path.isfile(cand):
            return cand
    raise FileNotFoundError(
        f"Could not resolve pose track for '{arg}'. "
        f"Tried as file and as stem in '{cache_dir}'."
    )


__all__ = [
    "load_posetrack",
    "load_posetrack_arrays",
    "save_posetrack",
    "frames_from_arrays",
    "frames_to_arrays",
    "load_keypoint_json",
    "load_frames",
    "resolve_posetrack_path",
]
