"""
swingcore.phase_segmentation
----------------------------

Key-event detection and six-phase segmentation of a swing.

The segmenter anchors on the impact event (first contact or peak-velocity
event in time) and splits the frames before and after it by fixed
proportions. When fewer than two events are found it falls back to a
time-proportional split around the peak hand speed.

Segments use inclusive [start, end] frame indices. Together they cover
[0, N-1] without gaps or overlap; only empty ranges are dropped, so the
single-frame impact segment is always kept.

Usage (library):
    from swingcore.phase_segmentation import segment_phases
    segs = segment_phases(extract_movement_features(frames))

Usage (CLI test):
    python -m swingcore.phase_segmentation path/to/swing.posetrack.npz
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from swingcore.config import MIN_FRAMES_EVENTS, MIN_FRAMES_SEGMENTATION
from swingcore.features import MovementFeatures

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------
# Taxonomy
# -------------------------------------------------------------------------

PHASES: Tuple[str, ...] = ("early-prep", "late-prep", "accel", "impact", "early-follow", "finish")

# Fixed per-phase confidence: how reliably each boundary is usually located.
PHASE_CONFIDENCE: Dict[str, float] = {
    "early-prep": 0.8,
    "late-prep": 0.9,
    "accel": 0.95,
    "impact": 1.0,
    "early-follow": 0.9,
    "finish": 0.8,
}
TIME_PHASE_CONFIDENCE: Dict[str, float] = {
    "early-prep": 0.7,
    "late-prep": 0.8,
    "accel": 0.9,
    "impact": 0.95,
    "early-follow": 0.8,
    "finish": 0.7,
}

# Cut points as fractions of the impact index: (end of early-prep, end of late-prep)
EVENT_CUTS = (0.25, 0.6)
TIME_CUTS = (0.3, 0.6)
FOLLOW_FRACTION = 0.2


# -------------------------------------------------------------------------
# Dataclasses
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class KeyEvent:
    type: str
    timestamp: float
    value: float
    description: str
    index: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PhaseSegment:
    phase: str
    start: int
    end: int
    confidence: float
    key_events: List[KeyEvent] = field(default_factory=list)

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "key_events": [e.to_dict() for e in self.key_events],
        }


# -------------------------------------------------------------------------
# Key events
# -------------------------------------------------------------------------

def _argmax_first(values: np.ndarray, lo: int, hi: int) -> Optional[int]:
    """Index of the first maximum in values[lo:hi], or None for an empty range."""
    if hi <= lo:
        return None
    return lo + int(np.argmax(values[lo:hi]))


def detect_key_events(features: Sequence[MovementFeatures]) -> List[KeyEvent]:
    """
    One global extremum per event type, sorted by timestamp.

      peak_velocity  max hand_speed over interior frames (if > 0)
      min_distance   min hand_dist among frames where it was measured (> 0)
      max_rotation   max |torso_rot| (if > 0)
      contact        max |hand_accel| over interior frames (if > 0)

    Needs at least 5 frames, else [].
    """
    n = len(features)
    if n < MIN_FRAMES_EVENTS:
        logger.debug("detect_key_events: %d frames, need %d", n, MIN_FRAMES_EVENTS)
        return []

    speed = np.array([f.hand_speed for f in features], dtype=np.float64)
    dist = np.array([f.hand_dist for f in features], dtype=np.float64)
    rot = np.abs(np.array([f.torso_rot for f in features], dtype=np.float64))
    accel = np.abs(np.array([f.hand_accel for f in features], dtype=np.float64))

    events: List[KeyEvent] = []

    def _emit(kind: str, idx: int, value: float, text: str) -> None:
        events.append(KeyEvent(kind, float(features[idx].t), float(value), text, int(idx)))

    i = _argmax_first(speed, 1, n - 1)
    if i is not None and speed[i] > 0:
        _emit("peak_velocity", i, speed[i], f"Peak hand velocity: {speed[i]:.2f}")

    measured = np.flatnonzero(dist > 0)
    if measured.size:
        i = int(measured[np.argmin(dist[measured])])
        _emit("min_distance", i, dist[i], f"Minimum hand-body distance: {dist[i]:.2f}")

    i = int(np.argmax(rot))
    if rot[i] > 0:
        _emit("max_rotation", i, rot[i], f"Maximum torso rotation: {rot[i]:.1f}°")

    i = _argmax_first(accel, 1, n - 1)
    if i is not None and accel[i] > 0:
        _emit("contact", i, accel[i], f"Contact/impact detected: {accel[i]:.2f}")

    events.sort(key=lambda e: (e.timestamp, e.index))
    return events


# -------------------------------------------------------------------------
# Segmentation
# -------------------------------------------------------------------------

def _partition(
    n: int,
    impact_idx: int,
    cuts: Tuple[float, float],
    confidence: Dict[str, float],
    events: Sequence[KeyEvent],
) -> List[PhaseSegment]:
    k = impact_idx
    a = int(np.floor(cuts[0] * k))
    b = max(a, int(np.floor(cuts[1] * k)))
    rem = n - 1 - k
    f = k + max(1, int(np.floor(FOLLOW_FRACTION * rem)))
    if rem >= 2:
        f = min(f, n - 2)

    bounds = [
        ("early-prep", 0, a),
        ("late-prep", a + 1, b),
        ("accel", b + 1, k - 1),
        ("impact", k, k),
        ("early-follow", k + 1, f),
        ("finish", f + 1, n - 1),
    ]
    segments: List[PhaseSegment] = []
    for phase, start, end in bounds:
        if start > end:
            continue
        segments.append(PhaseSegment(
            phase=phase,
            start=start,
            end=end,
            confidence=confidence[phase],
            key_events=[e for e in events if start <= e.index <= end],
        ))
    return segments


def segment_phases_by_time(features: Sequence[MovementFeatures]) -> List[PhaseSegment]:
    """Proportional split around the interior peak of hand_speed."""
    n = len(features)
    if n < MIN_FRAMES_SEGMENTATION:
        return []
    speed = np.array([f.hand_speed for f in features], dtype=np.float64)
    k = _argmax_first(speed, 1, n - 1)
    return _partition(n, k, TIME_CUTS, TIME_PHASE_CONFIDENCE, [])


def segment_phases(features: Sequence[MovementFeatures]) -> List[PhaseSegment]:
    """
    Six-phase segmentation anchored on the impact event.

    Needs at least 8 frames, else []. Falls back to segment_phases_by_time
    when fewer than two key events (or no contact/peak_velocity event) exist.
    """
    n = len(features)
    if n < MIN_FRAMES_SEGMENTATION:
        logger.debug("segment_phases: %d frames, need %d", n, MIN_FRAMES_SEGMENTATION)
        return []

    events = detect_key_events(features)
    if len(events) < 2:
        logger.debug("segment_phases: %d key events, using time split", len(events))
        return segment_phases_by_time(features)

    anchor = next((e for e in events if e.type in ("contact", "peak_velocity")), None)
    if anchor is None:
        return segment_phases_by_time(features)

    return _partition(n, anchor.index, EVENT_CUTS, PHASE_CONFIDENCE, events)


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------

def phase_labels(segments: Sequence[PhaseSegment], n: int) -> List[Optional[str]]:
    """Per-frame phase names; frames outside every segment are None."""
    labels: List[Optional[str]] = [None] * n
    for seg in segments:
        for i in range(max(0, seg.start), min(n, seg.end + 1)):
            labels[i] = seg.phase
    return labels


def phase_durations(segments: Sequence[PhaseSegment], fps: float) -> Dict[str, float]:
    """Seconds spent in each detected phase."""
    return {seg.phase: seg.length / float(fps) for seg in segments}


# -------------------------------------------------------------------------
# CLI Test Harness
# -------------------------------------------------------------------------

if __name__ == "__main__":
    from swingcore.features import extract_movement_features
    from swingcore.posetrack_io import load_posetrack

    parser = argparse.ArgumentParser(description="Quick CLI test for swing phase segmentation.")
    parser.add_argument("pose_npz", help="Path to .posetrack.npz file")
    parser.add_argument("--fps", type=float, default=None, help="Override fps stored in the file")
    parser.add_argument("--handedness", default="R", choices=["R", "L"])
    args = parser.parse_args()

    frames, fps, _meta = load_posetrack(args.pose_npz)
    fps = args.fps or fps
    feats = extract_movement_features(frames, fps=fps, handedness=args.handedness)
    for ev in detect_key_events(feats):
        print(f"[{ev.index:4d}] {ev.type:14s} {ev.description}")
    segs = segment_phases(feats)
    for seg in segs:
        print(f"{seg.phase:13s} {seg.start:4d} → {seg.end:4d}  conf={seg.confidence:.2f}")
    print("Durations (s):", {k: round(v, 3) for k, v in phase_durations(segs, fps).items()})
