#!/usr/bin/env python3
"""
compare_swings.py

Compare a student swing against a reference swing or a stroke template and
print the ComparisonResult as JSON.

The reference is either a pose file (.npz / .json) or a template name:
  template:forehand            -> templates/forehand.json (empty fallback if missing)
  builtin:forehand[:beginner]  -> built-in forehand at the given skill level

Usage:
  python -m scripts.compare_swings cache/STUDENT.posetrack.npz cache/PRO.posetrack.npz
  python -m scripts.compare_swings student.json builtin:forehand:intermediate --out result.json
"""

import os
import sys
import json
import argparse
import logging

# Make swingcore importable when script is in ./scripts
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from swingcore.compare_metrics import compare_poses
from swingcore.config import options_from_mapping
from swingcore.filters import smooth_frames
from swingcore.posetrack_io import load_frames, resolve_posetrack_path
from swingcore.pro_templates import forehand_template, load_template, validate_against_template


def _load_reference(ref: str, template_dir: str, fps):
    if ref.startswith("template:"):
        return load_template(ref.split(":", 1)[1], template_dir=template_dir)
    if ref.startswith("builtin:"):
        parts = ref.split(":")
        if parts[1] != "forehand":
            raise SystemExit(f"[ERROR] No built-in template for stroke '{parts[1]}'")
        try:
            return forehand_template(parts[2] if len(parts) > 2 else "professional")
        except ValueError as e:
            raise SystemExit(f"[ERROR] {e}")
    frames, _ = load_frames(resolve_posetrack_path(ref), fps)
    return frames


def main():
    ap = argparse.ArgumentParser(description="Compare a student swing to a reference swing or template.")
    ap.add_argument("student", help="Student pose file (.posetrack.npz or keypoint .json) or cache stem")
    ap.add_argument("reference", help="Reference pose file, template:<stroke> or builtin:forehand[:level]")
    ap.add_argument("--fps", type=float, default=None, help="Override fps from the files")
    ap.add_argument("--handedness", default="R", choices=["R", "L"])
    ap.add_argument("--options", default=None, help="JSON file with ComparisonOptions overrides")
    ap.add_argument("--template-dir", default="templates")
    ap.add_argument("--smooth", action="store_true", help="One-Euro smooth both inputs first")
    ap.add_argument("--out", default=None, help="Write JSON here instead of stdout")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    student, fps = load_frames(resolve_posetrack_path(args.student), args.fps)
    reference = _load_reference(args.reference, args.template_dir, args.fps)
    print(f"[INFO] Student: {args.student} frames={len(student)} fps={fps:.3f}", file=sys.stderr)

    raw_opts = {}
    if args.options:
        with open(args.options, "r", encoding="utf-8") as f:
            raw_opts = json.load(f)
    raw_opts.setdefault("fps", fps)
    raw_opts.setdefault("handedness", args.handedness)
    opts = options_from_mapping(raw_opts)

    if args.smooth:
        student = smooth_frames(student)
        if isinstance(reference, list):
            reference = smooth_frames(reference)

    result = compare_poses(student, reference, opts)
    payload = result.to_dict()
    if not isinstance(reference, list):
        check = validate_against_template(result.biomechanical_metrics, reference)
        payload["template_validation"] = {
            "is_valid": check.is_valid,
            "score": check.score,
            "feedback": check.feedback,
        }

    text = json.dumps(payload, indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"[INFO] Wrote {args.out}", file=sys.stderr)
    else:
        print(text)
    print(f"[INFO] Overall score: {result.overall_score:.3f}  similarity: {result.similarity:.3f}", file=sys.stderr)


if __name__ == "__main__":
    main()
