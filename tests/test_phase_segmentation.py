# tests/test_phase_segmentation.py
#
# Key events and six-phase segmentation on hand-built feature streams.

import numpy as np
import pytest

from swingcore.features import MovementFeatures, extract_movement_features
from swingcore.phase_segmentation import (
    PHASES,
    PHASE_CONFIDENCE,
    TIME_PHASE_CONFIDENCE,
    detect_key_events,
    phase_durations,
    phase_labels,
    segment_phases,
    segment_phases_by_time,
)


def _feats(n, speed=None, accel=None, dist=None, rot=None, fps=30.0):
    speed = np.zeros(n) if speed is None else speed
    accel = np.zeros(n) if accel is None else accel
    dist = np.zeros(n) if dist is None else dist
    rot = np.zeros(n) if rot is None else rot
    return [
        MovementFeatures(
            t=i / fps, hand_y=0.0, hand_dist=float(dist[i]), torso_rot=float(rot[i]),
            hand_speed=float(speed[i]), hand_accel=float(accel[i]),
            shoulder_rotation=0.0, hip_rotation=0.0, knee_stability=0.0,
        )
        for i in range(n)
    ]


def _peaked(n, at):
    x = np.zeros(n)
    x[at] = 3.0
    return x


def _assert_partition(segs, n):
    assert segs[0].start == 0
    assert segs[-1].end == n - 1
    for prev, nxt in zip(segs, segs[1:]):
        assert nxt.start == prev.end + 1
    for s in segs:
        assert s.start <= s.end
    order = [PHASES.index(s.phase) for s in segs]
    assert order == sorted(order)


def test_too_few_frames():
    assert detect_key_events(_feats(4, speed=np.ones(4))) == []
    assert segment_phases(_feats(7, speed=_peaked(7, 3))) == []
    assert segment_phases_by_time(_feats(7)) == []


def test_key_events_extrema_and_order():
    n = 40
    dist = np.full(n, 2.0)
    dist[12] = 0.5
    rot = np.zeros(n)
    rot[20] = -45.0
    events = detect_key_events(_feats(n, speed=_peaked(n, 30), accel=-_peaked(n, 31), dist=dist, rot=rot))
    assert [e.type for e in events] == ["min_distance", "max_rotation", "peak_velocity", "contact"]
    assert [e.index for e in events] == [12, 20, 30, 31]
    assert events[1].value == pytest.approx(45.0)
    assert events[3].value == pytest.approx(3.0)
    assert events[2].description == "Peak hand velocity: 3.00"
    assert events[2].timestamp == pytest.approx(30 / 30.0)


def test_key_events_ignore_unmeasured_distance_and_edges():
    n = 10
    speed = np.zeros(n)
    speed[-1] = 9.0  # last frame is not interior
    dist = np.zeros(n)
    dist[4] = 1.0
    events = detect_key_events(_feats(n, speed=speed, dist=dist))
    assert [(e.type, e.index) for e in events] == [("min_distance", 4)]


def test_event_segmentation_boundaries():
    n = 40
    dist = np.ones(n)
    segs = segment_phases(_feats(n, speed=_peaked(n, 30), accel=_peaked(n, 30), dist=dist))
    got = [(s.phase, s.start, s.end) for s in segs]
    assert got == [
        ("early-prep", 0, 7),
        ("late-prep", 8, 18),
        ("accel", 19, 29),
        ("impact", 30, 30),
        ("early-follow", 31, 31),
        ("finish", 32, 39),
    ]
    assert [s.confidence for s in segs] == [PHASE_CONFIDENCE[p] for p in PHASES]
    impact = segs[3]
    assert {e.type for e in impact.key_events} == {"peak_velocity", "contact"}
    assert [e.type for e in segs[0].key_events] == ["min_distance"]


def test_impact_near_the_end_drops_finish():
    n = 10
    segs = segment_phases(_feats(n, speed=_peaked(n, 8), accel=_peaked(n, 8)))
    got = [(s.phase, s.start, s.end) for s in segs]
    assert got == [
        ("early-prep", 0, 2),
        ("late-prep", 3, 4),
        ("accel", 5, 7),
        ("impact", 8, 8),
        ("early-follow", 9, 9),
    ]
    _assert_partition(segs, n)


def test_time_fallback_without_events():
    segs = segment_phases(_feats(8))
    got = [(s.phase, s.start, s.end) for s in segs]
    assert got == [
        ("early-prep", 0, 0),
        ("impact", 1, 1),
        ("early-follow", 2, 2),
        ("finish", 3, 7),
    ]
    assert segs[1].confidence == TIME_PHASE_CONFIDENCE["impact"]
    assert all(s.key_events == [] for s in segs)


def test_single_event_uses_time_split():
    n = 20
    dist = np.ones(n)
    segs = segment_phases(_feats(n, dist=dist))
    assert [s.confidence for s in segs] == [TIME_PHASE_CONFIDENCE[s.phase] for s in segs]


def test_impact_segment_is_single_frame_on_real_stream(swing_frames):
    feats = extract_movement_features(swing_frames, fps=30)
    segs = segment_phases(feats)
    _assert_partition(segs, len(feats))
    impact = [s for s in segs if s.phase == "impact"]
    assert len(impact) == 1 and impact[0].length == 1


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_random_streams_partition_frames(seed):
    rng = np.random.RandomState(seed)
    n = int(rng.randint(8, 120))
    segs = segment_phases(_feats(
        n,
        speed=np.abs(rng.randn(n)),
        accel=rng.randn(n),
        dist=np.abs(rng.randn(n)),
        rot=rng.randn(n) * 30.0,
    ))
    _assert_partition(segs, n)
    assert sum(s.length for s in segs) == n


def test_labels_and_durations():
    segs = segment_phases(_feats(8))
    labels = phase_labels(segs, 10)
    assert labels[:4] == ["early-prep", "impact", "early-follow", "finish"]
    assert labels[8:] == [None, None]
    durs = phase_durations(segs, fps=4.0)
    assert durs["finish"] == pytest.approx(5 / 4.0)
    assert "accel" not in durs
