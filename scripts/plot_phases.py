#!/usr/bin/env python3
"""
plot_phases.py

Plot dominant-hand height and speed over time with the detected swing
phases shaded.

Usage:
  python -m scripts.plot_phases cache/SWING.posetrack.npz
  python -m scripts.plot_phases swing.json --save viz/SWING_phases.png
"""

import os
import sys
import argparse

import numpy as np
import matplotlib
import matplotlib.pyplot as plt

# Make swingcore importable when script is in ./scripts
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from swingcore.features import extract_movement_features, features_to_columns
from swingcore.phase_segmentation import PHASES, detect_key_events, segment_phases
from swingcore.posetrack_io import load_frames, resolve_posetrack_path

PHASE_COLORS = dict(zip(PHASES, matplotlib.colormaps["tab10"].colors))


def plot_phases(frames, fps, handedness="R", title=""):
    feats = extract_movement_features(frames, fps=fps, handedness=handedness)
    cols = features_to_columns(feats)
    t = np.arange(len(feats)) / fps
    segs = segment_phases(feats)

    fig, (ax_y, ax_v) = plt.subplots(2, 1, figsize=(10, 6), sharex=True)
    # y grows downward in image coordinates; flip so up is up
    ax_y.plot(t, -cols["hand_y"], color="k", label="hand height (+up)")
    ax_v.plot(t, cols["hand_speed"], color="tab:blue", label="hand speed")

    for seg in segs:
        t0 = seg.start / fps
        t1 = (seg.end + 1) / fps
        for ax in (ax_y, ax_v):
            ax.axvspan(t0, t1, color=PHASE_COLORS[seg.phase], alpha=0.2, lw=0)
        ax_y.text(0.5 * (t0 + t1), ax_y.get_ylim()[1], seg.phase, ha="center", va="top", fontsize=8)

    for ev in detect_key_events(feats):
        ax_v.axvline(ev.index / fps, color="gray", linestyle="--", lw=0.8)

    ax_y.set_ylabel("Hand height")
    ax_v.set_ylabel("Hand speed (/s)")
    ax_v.set_xlabel("Time (s)")
    ax_y.set_title(title or "Swing phases")
    ax_y.legend(loc="lower right")
    ax_v.legend(loc="upper right")
    fig.tight_layout()
    return fig


def main():
    ap = argparse.ArgumentParser(description="Plot hand height/speed with swing phases.")
    ap.add_argument("pose", help="Pose file (.posetrack.npz or keypoint .json) or cache stem")
    ap.add_argument("--fps", type=float, default=None)
    ap.add_argument("--handedness", default="R", choices=["R", "L"])
    ap.add_argument("--save", default=None, help="Save PNG here instead of showing")
    args = ap.parse_args()

    frames, fps = load_frames(resolve_posetrack_path(args.pose), args.fps)
    print(f"[INFO] Loaded {args.pose} frames={len(frames)} fps={fps:.3f}")
    fig = plot_phases(frames, fps, args.handedness, os.path.basename(args.pose))
    if args.save:
        out_dir = os.path.dirname(args.save)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        plt.savefig(args.save, bbox_inches="tight", dpi=150)
        print(f"[INFO] Saved {args.save}")
    else:
        plt.show()
    plt.close(fig)


if __name__ == "__main__":
    main()
