# swingcore/compare_metrics.py
#
# Student-vs-reference swing comparison.
#
# Responsibilities:
#   - extract movement features for the student (and a raw-frame reference)
#   - windowed biomechanical snapshot of the student
#   - segment the student into phases and score each against the matching
#     reference slice (feature averages + DTW timing similarity)
#   - whole-swing DTW similarity and phase shift
#   - weighted overall score and rule-based recommendations
#
# The reference is never segmented. A ProTemplate supplies its own per-phase
# series; a raw-frame reference is sliced by a proportional window.
#
# This module is IO-free (no files, no printing).

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from swingcore.biomechanics import (
    calculate_movement_quality,
    calculate_stability,
    calculate_symmetry,
    compute_angles,
)
from swingcore.coaching_thresholds import (
    MAX_RECOMMENDATIONS,
    MESSAGES,
    NO_DATA_MESSAGE,
    POSITIVE_MESSAGE,
    below_threshold,
    phase_message,
    triggered_checks,
)
from swingcore.config import ComparisonOptions, options_from_mapping
from swingcore.dtw import calculate_similarity, find_best_alignment
from swingcore.features import (
    AVERAGE_KEYS,
    GLOBAL_KEYS,
    TIMING_KEYS,
    MovementFeatures,
    extract_movement_features,
    feature_matrix,
)
from swingcore.joints import ARM_CHAIN, side_for_handedness
from swingcore.phase_segmentation import PHASES, PhaseSegment, segment_phases
from swingcore.pose import Frame
from swingcore.pro_templates import ProTemplate

logger = logging.getLogger(__name__)

# Component weights of the overall score
PHASE_WEIGHT = 0.6
BIOMECH_WEIGHT = 0.3
SIMILARITY_WEIGHT = 0.1

# Phase score = BIO * feature-average score + TIMING * DTW similarity
PHASE_BIOMECH_WEIGHT = 0.6
PHASE_TIMING_WEIGHT = 0.4

# Fixed reference windows as fractions of the reference length: (start, length)
FIXED_REFERENCE_WINDOWS: Dict[str, tuple] = {
    "early-prep": (0.0, 0.25),
    "late-prep": (0.25, 0.35),
    "accel": (0.6, 0.15),
    "impact": (0.75, 0.05),
    "early-follow": (0.8, 0.15),
    "finish": (0.9, 0.05),
}

Reference = Union[Sequence[Frame], ProTemplate]


# ========= Result records =========

@dataclass
class BiomechanicalMetrics:
    stability: float = 0.0
    symmetry: float = 0.0
    fluidity: float = 0.0
    balance: float = 0.0
    x_factor: float = 0.0
    shoulder_rotation: float = 0.0
    hip_rotation: float = 0.0
    knee_stability: float = 0.0
    elbow_angle: float = 0.0
    wrist_position: float = 0.0

    def quality_score(self) -> float:
        return (self.stability + self.symmetry + self.fluidity + self.balance) / 4.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class PhaseScore:
    phase: str
    score: float
    confidence: float
    key_events: List[str] = field(default_factory=list)
    biomechanical_score: float = 0.0
    timing_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ComparisonResult:
    overall_score: float
    phase_scores: Dict[str, PhaseScore]
    biomechanical_metrics: BiomechanicalMetrics
    recommendations: List[str]
    similarity: float
    phase_shift: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "phase_scores": {k: v.to_dict() for k, v in self.phase_scores.items()},
            "biomechanical_metrics": self.biomechanical_metrics.to_dict(),
            "recommendations": list(self.recommendations),
            "similarity": self.similarity,
            "phase_shift": self.phase_shift,
        }


def empty_result() -> ComparisonResult:
    return ComparisonResult(
        overall_score=0.0,
        phase_scores={},
        biomechanical_metrics=BiomechanicalMetrics(),
        recommendations=[NO_DATA_MESSAGE],
        similarity=0.0,
        phase_shift=0.0,
    )


def _clamp01(x: float) -> float:
    return float(min(1.0, max(0.0, x)))


# ========= Reference views =========

class _FrameReference:
    """Raw reference frames, sliced per phase by a proportional window."""

    def __init__(self, features: Sequence[MovementFeatures], mode: str):
        self.features = list(features)
        self.mode = mode

    def window(self, segment: PhaseSegment, n_student: int) -> Sequence[MovementFeatures]:
        n = len(self.features)
        if n == 0 or n_student == 0:
            return []
        if self.mode == "fixed":
            frac_start, frac_len = FIXED_REFERENCE_WINDOWS[segment.phase]
            start = int(np.floor(frac_start * n))
            end = min(n - 1, start + int(np.floor(frac_len * n)))
        else:
            # project the student's [start, end] span onto the reference
            start = (segment.start * n) // n_student
            end = -(-((segment.end + 1) * n) // n_student) - 1
            end = min(n - 1, max(start, end))
        return self.features[start:end + 1]

    def phase_matrix(self, segment: PhaseSegment, n_student: int, keys: Sequence[str]) -> np.ndarray:
        return feature_matrix(self.window(segment, n_student), keys)

    def full_matrix(self, keys: Sequence[str]) -> np.ndarray:
        return feature_matrix(self.features, keys)


class _TemplateReference:
    """Template phases used directly as the reference slices."""

    def __init__(self, template: ProTemplate):
        self.template = template

    def phase_matrix(self, segment: PhaseSegment, n_student: int, keys: Sequence[str]) -> np.ndarray:
        return self.template.phase_matrix(segment.phase, keys)

    def full_matrix(self, keys: Sequence[str]) -> np.ndarray:
        return self.template.full_matrix(keys)


# ========= Biomechanics =========

def analyze_biomechanics(
    frames: Sequence[Frame],
    fps: float = 30.0,
    handedness: str = "R",
) -> BiomechanicalMetrics:
    """
    Windowed snapshot of the student:
      stability   dominant wrist stability over the window
      symmetry    mean per-frame symmetry
      fluidity, balance from calculate_movement_quality
      angles      from the most recent frame; wrist_position clamped to [0, 1]
    """
    if len(frames) == 0:
        return BiomechanicalMetrics()
    side = side_for_handedness(handedness)
    poses = [fr.pose for fr in frames]
    quality = calculate_movement_quality(poses, fps=fps, side=side)
    angles = compute_angles(poses[-1], side)
    return BiomechanicalMetrics(
        stability=calculate_stability(poses, ARM_CHAIN[side][2]),
        symmetry=float(np.mean([calculate_symmetry(p) for p in poses])),
        fluidity=quality.fluidity,
        balance=quality.balance,
        x_factor=angles.x_factor,
        shoulder_rotation=angles.shoulder_rotation,
        hip_rotation=angles.hip_rotation,
        knee_stability=angles.knee_stability,
        elbow_angle=angles.elbow,
        wrist_position=_clamp01(angles.hand_height),
    )


# ========= Phase scoring =========

def feature_average_score(student: np.ndarray, reference: np.ndarray) -> float:
    """Mean over columns of max(0, 1 - |s_avg - r_avg| / max(|r_avg|, 1))."""
    if student.shape[0] == 0 or reference.shape[0] == 0:
        return 0.0
    s_avg = student.mean(axis=0)
    r_avg = reference.mean(axis=0)
    scores = np.maximum(0.0, 1.0 - np.abs(s_avg - r_avg) / np.maximum(np.abs(r_avg), 1.0))
    return float(np.mean(scores))


def score_phase(
    segment: PhaseSegment,
    student_features: Sequence[MovementFeatures],
    reference_avg: np.ndarray,
    reference_timing: np.ndarray,
    options: ComparisonOptions,
) -> PhaseScore:
    """Score one student phase against its reference slice; an empty slice scores 0."""
    if reference_avg.shape[0] == 0 or len(student_features) == 0:
        return PhaseScore(phase=segment.phase, score=0.0, confidence=segment.confidence)

    bio = feature_average_score(feature_matrix(student_features, AVERAGE_KEYS), reference_avg)
    timing = calculate_similarity(
        feature_matrix(student_features, TIMING_KEYS),
        reference_timing,
        options.dtw_for(TIMING_KEYS),
    )
    return PhaseScore(
        phase=segment.phase,
        score=_clamp01(PHASE_BIOMECH_WEIGHT * bio + PHASE_TIMING_WEIGHT * timing),
        confidence=segment.confidence,
        key_events=[e.description for e in segment.key_events],
        biomechanical_score=bio,
        timing_score=timing,
    )


def analyze_phases(
    student_features: Sequence[MovementFeatures],
    reference: Any,
    options: ComparisonOptions,
) -> Dict[str, PhaseScore]:
    segments = segment_phases(student_features)
    n = len(student_features)
    scores: Dict[str, PhaseScore] = {}
    for seg in segments:
        if seg.confidence < options.min_confidence:
            continue
        scores[seg.phase] = score_phase(
            seg,
            student_features[seg.start:seg.end + 1],
            reference.phase_matrix(seg, n, AVERAGE_KEYS),
            reference.phase_matrix(seg, n, TIMING_KEYS),
            options,
        )
    return scores


# ========= Aggregation =========

def calculate_overall_score(
    phase_scores: Mapping[str, PhaseScore],
    metrics: Optional[BiomechanicalMetrics],
    similarity: float,
) -> float:
    """
    0.6 * mean phase score + 0.3 * mean quality metric + 0.1 * similarity,
    renormalized over the components that were computed (no phase scores,
    or metrics=None, drop that component).
    """
    total, weight = 0.0, 0.0
    if phase_scores:
        total += PHASE_WEIGHT * float(np.mean([p.score for p in phase_scores.values()]))
        weight += PHASE_WEIGHT
    if metrics is not None:
        total += BIOMECH_WEIGHT * metrics.quality_score()
        weight += BIOMECH_WEIGHT
    total += SIMILARITY_WEIGHT * similarity
    weight += SIMILARITY_WEIGHT
    return _clamp01(total / weight)


def generate_recommendations(
    phase_scores: Mapping[str, PhaseScore],
    metrics: Optional[BiomechanicalMetrics],
    similarity: float,
) -> List[str]:
    """Phase messages (swing order), then biomechanics, then overall form; at most 5."""
    recs: List[str] = []
    for phase in PHASES:
        ps = phase_scores.get(phase)
        if ps is not None and below_threshold("phase_score", ps.score):
            recs.append(phase_message(phase))
    if metrics is not None:
        recs.extend(MESSAGES[k] for k in triggered_checks(metrics.to_dict()))
    if below_threshold("similarity", similarity):
        recs.append(MESSAGES["similarity"])
    if not recs:
        recs.append(POSITIVE_MESSAGE)
    return recs[:MAX_RECOMMENDATIONS]


# ========= Entry point =========

def compare_poses(
    student_frames: Sequence[Frame],
    reference: Optional[Reference],
    options: Union[ComparisonOptions, Mapping[str, Any], None] = None,
) -> ComparisonResult:
    """
    Compare a student swing against reference frames or a ProTemplate.

    Empty student input (or an empty list of reference frames) gives
    empty_result(). An empty template still produces a full result with
    zero reference contributions.
    """
    opts = options_from_mapping(options)
    if len(student_frames) == 0 or reference is None:
        logger.debug("compare_poses: no student frames or reference")
        return empty_result()

    if isinstance(reference, ProTemplate):
        if reference.is_empty():
            logger.debug("compare_poses: template %r has no reference series", reference.name)
        ref: Any = _TemplateReference(reference)
    else:
        if len(reference) == 0:
            logger.debug("compare_poses: empty reference frames")
            return empty_result()
        ref = _FrameReference(
            extract_movement_features(reference, fps=opts.fps, handedness=opts.handedness),
            opts.reference_window,
        )

    student = extract_movement_features(student_frames, fps=opts.fps, handedness=opts.handedness)

    metrics = (
        analyze_biomechanics(student_frames, fps=opts.fps, handedness=opts.handedness)
        if opts.enable_biomechanical_analysis else None
    )
    phase_scores = analyze_phases(student, ref, opts) if opts.enable_phase_analysis else {}

    alignment = find_best_alignment(
        feature_matrix(student, GLOBAL_KEYS),
        ref.full_matrix(GLOBAL_KEYS),
        opts.dtw_for(GLOBAL_KEYS),
    )

    return ComparisonResult(
        overall_score=calculate_overall_score(phase_scores, metrics, alignment.similarity),
        phase_scores=phase_scores,
        biomechanical_metrics=metrics if metrics is not None else BiomechanicalMetrics(),
        recommendations=generate_recommendations(phase_scores, metrics, alignment.similarity),
        similarity=alignment.similarity,
        phase_shift=alignment.phase_shift,
    )


__all__ = [
    "PHASE_WEIGHT", "BIOMECH_WEIGHT", "SIMILARITY_WEIGHT",
    "FIXED_REFERENCE_WINDOWS",
    "BiomechanicalMetrics", "PhaseScore", "ComparisonResult",
    "empty_result",
    "analyze_biomechanics", "feature_average_score", "score_phase", "analyze_phases",
    "calculate_overall_score", "generate_recommendations",
    "compare_poses",
]
