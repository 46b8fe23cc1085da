# tests/test_posetrack_io.py
#
# NPZ / keypoint JSON loading, legacy layout, and path resolution.

import json

import numpy as np
import pytest

from swingcore.posetrack_io import (
    frames_to_arrays,
    load_frames,
    load_keypoint_json,
    load_posetrack,
    load_posetrack_arrays,
    resolve_posetrack_path,
    save_posetrack,
)

from conftest import swing_arrays


def test_save_and_load_posetrack(tmp_path, swing_frames):
    path = str(tmp_path / "swing.posetrack.npz")
    save_posetrack(path, swing_frames, fps=30.0, meta={"player": "test"})
    frames, fps, meta = load_posetrack(path)
    assert fps == 30.0
    assert meta["player"] == "test"
    assert len(meta["landmark_names"]) == 33
    assert len(frames) == len(swing_frames)
    P0, _, t0 = frames_to_arrays(swing_frames)
    P1, _, t1 = frames_to_arrays(frames)
    np.testing.assert_allclose(P1, P0)
    np.testing.assert_allclose(t1, t0)


def test_legacy_npz_layout(tmp_path):
    P = swing_arrays(T=6)
    path = str(tmp_path / "old.npz")
    np.savez(path, kps_xyz=P, visibility=np.ones(P.shape[:2]), fps=np.array([25.0]))
    P1, V1, t, fps, meta = load_posetrack_arrays(path)
    assert fps == 25.0
    assert t is None
    assert P1.shape == (6, 33, 3)
    frames, fps2 = load_frames(path)
    assert fps2 == 25.0
    assert frames[1].timestamp == pytest.approx(1 / 25.0)


def test_unknown_npz_layout(tmp_path):
    path = str(tmp_path / "bad.npz")
    np.savez(path, something=np.zeros(3))
    with pytest.raises(KeyError):
        load_posetrack_arrays(path)


def test_keypoint_json(tmp_path):
    payload = {
        "fps": 60,
        "frames": [
            {"timestamp": 0, "keypoints": [{"name": "right_wrist", "x": 0.1, "y": 0.2, "z": 0.0, "visibility": 0.9}]},
            {"timestamp": 16.7, "keypoints": [{"name": "right_wrist", "x": 0.1, "y": 0.3, "z": 0.0, "visibility": 0.9}]},
        ],
    }
    path = tmp_path / "swing.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    frames, fps = load_keypoint_json(str(path))
    assert fps == 60.0
    assert frames[1].pose.get("right_wrist")[1] == pytest.approx(0.3)
    frames, fps = load_frames(str(path), fps=30.0)
    assert fps == 30.0


def test_unsupported_extension_and_missing_files(tmp_path):
    with pytest.raises(ValueError):
        load_frames(str(tmp_path / "swing.csv"))
    with pytest.raises(FileNotFoundError):
        load_posetrack_arrays(str(tmp_path / "nope.npz"))
    with pytest.raises(FileNotFoundError):
        resolve_posetrack_path("nope", cache_dir=str(tmp_path))


def test_resolve_posetrack_path(tmp_path, swing_frames):
    target = tmp_path / "PLAYER1.posetrack.npz"
    save_posetrack(str(target), swing_frames[:3], fps=30.0)
    assert resolve_posetrack_path("PLAYER1", cache_dir=str(tmp_path)) == str(target)
    assert resolve_posetrack_path(str(target)) == str(target)
