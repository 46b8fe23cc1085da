#!/usr/bin/env python3
"""
build_feature_table.py

Write per-frame movement features with phase labels to CSV, plus an
optional per-phase mean table.

Usage:
  python -m scripts.build_feature_table cache/SWING.posetrack.npz --out_csv viz/SWING_features.csv
  python -m scripts.build_feature_table swing.json --fps 60 --phase_means_csv viz/SWING_phase_means.csv
"""

import os
import sys
import argparse

# Make swingcore importable when script is in ./scripts
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from swingcore.feature_table import features_dataframe, phase_means_dataframe
from swingcore.features import extract_movement_features
from swingcore.phase_segmentation import segment_phases
from swingcore.posetrack_io import load_frames, resolve_posetrack_path


def main():
    ap = argparse.ArgumentParser(description="Per-frame swing features + phase labels to CSV.")
    ap.add_argument("pose", help="Pose file (.posetrack.npz or keypoint .json) or cache stem")
    ap.add_argument("--out_csv", required=True)
    ap.add_argument("--phase_means_csv", default=None)
    ap.add_argument("--fps", type=float, default=None)
    ap.add_argument("--handedness", default="R", choices=["R", "L"])
    args = ap.parse_args()

    frames, fps = load_frames(resolve_posetrack_path(args.pose), args.fps)
    print(f"[INFO] Loaded {args.pose} frames={len(frames)} fps={fps:.3f}")

    feats = extract_movement_features(frames, fps=fps, handedness=args.handedness)
    segs = segment_phases(feats)
    if not segs:
        print(f"[WARN] Too few frames to segment ({len(feats)}); phase column left empty")
    df = features_dataframe(feats, segs)

    out_dir = os.path.dirname(args.out_csv)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    df.to_csv(args.out_csv, index=False)
    print(f"[INFO] Wrote {args.out_csv} ({len(df)} rows)")

    if args.phase_means_csv:
        means = phase_means_dataframe(df)
        means.to_csv(args.phase_means_csv)
        print(f"[INFO] Wrote {args.phase_means_csv} ({len(means)} phases)")


if __name__ == "__main__":
    main()
