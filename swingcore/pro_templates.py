# swingcore/pro_templates.py
#
# Professional reference templates: per-phase feature series plus target
# ranges for biomechanical metrics and phase timing.
#
# Templates are read-only once built. Loading never raises for a missing or
# unreadable file; it logs a warning and hands back a fallback template whose
# phase series are all empty, which the comparator scores as "no data".
#
# JSON layouts accepted by load_template:
#   * Current:  {"name", "phases": {phase: {feature: [...]}}, "biomechanical_targets", "timing", ...}
#   * Legacy:   {"byPhase": {phase: [] | [{feature: v}, ...] | {feature: [...]}}}
#   camelCase keys (handY, skillLevel, biomechanicalTargets, ...) are accepted anywhere.

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from swingcore.biomechanics import compute_angles
from swingcore.config import EPS
from swingcore.features import extract_movement_features, stack_columns
from swingcore.joints import LEFT_HIP, RIGHT_HIP, side_for_handedness
from swingcore.phase_segmentation import PHASES, PhaseSegment
from swingcore.pose import Frame, Pose

logger = logging.getLogger(__name__)

STROKE_TYPES = ("forehand", "backhand", "serve")
SKILL_LEVELS = ("beginner", "intermediate", "advanced", "professional")

# Series carried per phase
TEMPLATE_KEYS = (
    "hand_y",
    "hand_dist",
    "torso_rot",
    "hand_speed",
    "shoulder_rotation",
    "hip_rotation",
    "knee_stability",
    "elbow_angle",
    "wrist_position",
)

# phase -> timing target key (finish has no timing target)
TIMING_KEY_BY_PHASE = {
    "early-prep": "early_prep_duration",
    "late-prep": "late_prep_duration",
    "accel": "acceleration_duration",
    "impact": "impact_duration",
    "early-follow": "follow_through_duration",
}

_CAMEL = {
    "handY": "hand_y",
    "handDist": "hand_dist",
    "torsoRot": "torso_rot",
    "handSpeed": "hand_speed",
    "shoulderRotation": "shoulder_rotation",
    "hipRotation": "hip_rotation",
    "kneeStability": "knee_stability",
    "elbowAngle": "elbow_angle",
    "wristPosition": "wrist_position",
    "xFactor": "x_factor",
    "earlyPrepDuration": "early_prep_duration",
    "latePrepDuration": "late_prep_duration",
    "accelerationDuration": "acceleration_duration",
    "impactDuration": "impact_duration",
    "followThroughDuration": "follow_through_duration",
    "skillLevel": "skill_level",
    "strokeType": "stroke_type",
    "biomechanicalTargets": "biomechanical_targets",
}


def _snake(key: str) -> str:
    return _CAMEL.get(key, key)


# ========= Records =========

@dataclass(frozen=True)
class TargetRange:
    min: float
    optimal: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def score(self, value: float) -> float:
        """1 at the optimum, falling to 0 half a range away; 0 outside [min, max]."""
        if not self.contains(value):
            return 0.0
        half = 0.5 * (self.max - self.min)
        if half <= 0:
            return 1.0 if value == self.optimal else 0.0
        return float(max(0.0, 1.0 - abs(value - self.optimal) / half))

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "optimal": self.optimal, "max": self.max}

    @classmethod
    def from_any(cls, raw: Any) -> "TargetRange":
        if isinstance(raw, TargetRange):
            return raw
        if isinstance(raw, Mapping):
            return cls(float(raw["min"]), float(raw["optimal"]), float(raw["max"]))
        lo, opt, hi = (float(x) for x in raw)
        return cls(lo, opt, hi)


def _frozen_series(values: Any) -> np.ndarray:
    a = np.array(values, dtype=np.float64).reshape(-1)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class ProTemplate:
    name: str
    description: str = ""
    skill_level: str = "professional"
    stroke_type: str = "forehand"
    phases: Dict[str, Dict[str, np.ndarray]] = field(default_factory=dict)
    biomechanical_targets: Dict[str, TargetRange] = field(default_factory=dict)
    timing: Dict[str, TargetRange] = field(default_factory=dict)

    def __post_init__(self) -> None:
        phases = {
            ph: {_snake(k): _frozen_series(v) for k, v in dict(series).items()}
            for ph, series in dict(self.phases).items()
        }
        object.__setattr__(self, "phases", phases)
        object.__setattr__(self, "biomechanical_targets", {
            _snake(k): TargetRange.from_any(v) for k, v in dict(self.biomechanical_targets).items()
        })
        object.__setattr__(self, "timing", {
            _snake(k): TargetRange.from_any(v) for k, v in dict(self.timing).items()
        })

    # ---- series access ----

    def phase_length(self, phase: str) -> int:
        series = self.phases.get(phase, {})
        return max((len(v) for v in series.values()), default=0)

    def phase_matrix(self, phase: str, keys: Sequence[str]) -> np.ndarray:
        """(T, K) reference slice for one phase; (0, K) when the phase has no data."""
        series = self.phases.get(phase)
        if not series or self.phase_length(phase) == 0:
            return np.zeros((0, len(keys)), dtype=np.float64)
        return stack_columns(series, keys)

    def full_matrix(self, keys: Sequence[str]) -> np.ndarray:
        """All phases concatenated in swing order."""
        parts = [self.phase_matrix(ph, keys) for ph in PHASES]
        return np.vstack(parts) if parts else np.zeros((0, len(keys)))

    def is_empty(self) -> bool:
        return all(self.phase_length(ph) == 0 for ph in self.phases) or not self.phases

    # ---- serialization ----

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "skill_level": self.skill_level,
            "stroke_type": self.stroke_type,
            "phases": {
                ph: {k: v.tolist() for k, v in series.items()}
                for ph, series in self.phases.items()
            },
            "biomechanical_targets": {k: v.to_dict() for k, v in self.biomechanical_targets.items()},
            "timing": {k: v.to_dict() for k, v in self.timing.items()},
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], stroke_type: str = "forehand") -> "ProTemplate":
        if not isinstance(raw, Mapping):
            raise ValueError(f"Template must be a JSON object, got {type(raw).__name__}")
        data = {_snake(k): v for k, v in raw.items()}
        if "phases" in data:
            phases = _phases_from_any(data["phases"])
        elif "byPhase" in data or "by_phase" in data:
            phases = _phases_from_any(data.get("byPhase", data.get("by_phase")))
        else:
            raise KeyError(f"Template has neither 'phases' nor 'byPhase'; found {sorted(raw)}")
        return cls(
            name=str(data.get("name", f"{stroke_type} template")),
            description=str(data.get("description", "")),
            skill_level=str(data.get("skill_level", "professional")),
            stroke_type=str(data.get("stroke_type", stroke_type)),
            phases=phases,
            biomechanical_targets=data.get("biomechanical_targets", {}) or {},
            timing=data.get("timing", {}) or {},
        )


def _phases_from_any(raw: Mapping[str, Any]) -> Dict[str, Dict[str, List[float]]]:
    """Normalize one phase map: {feature: [...]} or a list of per-frame feature dicts."""
    out: Dict[str, Dict[str, List[float]]] = {}
    for phase, body in dict(raw).items():
        if isinstance(body, Mapping):
            out[phase] = {_snake(k): list(v) for k, v in body.items()}
            continue
        rows = list(body or [])
        cols: Dict[str, List[float]] = {}
        for row in rows:
            if not isinstance(row, Mapping):
                raise ValueError(f"Phase {phase!r}: expected feature dicts, got {type(row).__name__}")
            for k, v in row.items():
                k = _snake(k)
                if k in TEMPLATE_KEYS:
                    cols.setdefault(k, []).append(float(v))
        out[phase] = cols
    return out


# ========= Built-in forehand =========

def smooth_step(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def smooth_curve(
    length: int,
    start: float,
    end: float,
    pattern: str,
    rng: Optional[np.random.RandomState] = None,
) -> np.ndarray:
    """
    length samples shaped by pattern:
      ascending   start -> end along a smooth step
      descending  end -> start along a smooth step
      peak        start -> end -> start along a half sine
      stable      start plus uniform noise of width 0.05
    """
    t = np.linspace(0.0, 1.0, length) if length > 1 else np.zeros(length)
    if pattern == "ascending":
        return start + (end - start) * smooth_step(t)
    if pattern == "descending":
        return start + (end - start) * smooth_step(1.0 - t)
    if pattern == "peak":
        return start + (end - start) * np.sin(t * np.pi)
    if pattern == "stable":
        rng = rng if rng is not None else np.random.RandomState(0)
        return start + (rng.rand(length) - 0.5) * 0.05
    raise ValueError(f"Unknown curve pattern: {pattern!r}")


# (phase, length, {feature: (start, end, pattern)})
_FOREHAND_SHAPES = [
    ("early-prep", 30, {
        "hand_y": (0.3, 0.4, "ascending"), "hand_dist": (0.8, 0.9, "stable"),
        "torso_rot": (0.1, 0.2, "ascending"), "hand_speed": (0.1, 0.2, "ascending"),
        "shoulder_rotation": (0.1, 0.3, "ascending"), "hip_rotation": (0.05, 0.15, "ascending"),
        "knee_stability": (0.8, 0.9, "stable"), "elbow_angle": (0.7, 0.8, "stable"),
        "wrist_position": (0.6, 0.7, "stable"),
    }),
    ("late-prep", 35, {
        "hand_y": (0.4, 0.6, "ascending"), "hand_dist": (0.9, 1.0, "ascending"),
        "torso_rot": (0.2, 0.5, "ascending"), "hand_speed": (0.2, 0.4, "ascending"),
        "shoulder_rotation": (0.3, 0.6, "ascending"), "hip_rotation": (0.15, 0.4, "ascending"),
        "knee_stability": (0.8, 0.9, "stable"), "elbow_angle": (0.8, 0.9, "ascending"),
        "wrist_position": (0.7, 0.8, "stable"),
    }),
    ("accel", 15, {
        "hand_y": (0.6, 0.8, "ascending"), "hand_dist": (1.0, 0.7, "descending"),
        "torso_rot": (0.5, 0.8, "ascending"), "hand_speed": (0.4, 0.9, "ascending"),
        "shoulder_rotation": (0.6, 0.9, "ascending"), "hip_rotation": (0.4, 0.7, "ascending"),
        "knee_stability": (0.9, 0.95, "stable"), "elbow_angle": (0.9, 0.95, "ascending"),
        "wrist_position": (0.8, 0.9, "ascending"),
    }),
    ("impact", 5, {
        "hand_y": (0.8, 0.85, "peak"), "hand_dist": (0.7, 0.6, "descending"),
        "torso_rot": (0.8, 0.85, "peak"), "hand_speed": (0.9, 1.0, "peak"),
        "shoulder_rotation": (0.9, 0.95, "peak"), "hip_rotation": (0.7, 0.8, "peak"),
        "knee_stability": (0.95, 1.0, "peak"), "elbow_angle": (0.95, 1.0, "peak"),
        "wrist_position": (0.9, 0.95, "peak"),
    }),
    ("early-follow", 15, {
        "hand_y": (0.85, 0.7, "descending"), "hand_dist": (0.6, 0.8, "ascending"),
        "torso_rot": (0.85, 0.6, "descending"), "hand_speed": (1.0, 0.6, "descending"),
        "shoulder_rotation": (0.95, 0.7, "descending"), "hip_rotation": (0.8, 0.5, "descending"),
        "knee_stability": (1.0, 0.9, "stable"), "elbow_angle": (1.0, 0.8, "descending"),
        "wrist_position": (0.95, 0.8, "descending"),
    }),
    ("finish", 10, {
        "hand_y": (0.7, 0.5, "descending"), "hand_dist": (0.8, 0.9, "ascending"),
        "torso_rot": (0.6, 0.3, "descending"), "hand_speed": (0.6, 0.2, "descending"),
        "shoulder_rotation": (0.7, 0.4, "descending"), "hip_rotation": (0.5, 0.2, "descending"),
        "knee_stability": (0.9, 0.85, "stable"), "elbow_angle": (0.8, 0.7, "descending"),
        "wrist_position": (0.8, 0.6, "descending"),
    }),
]

_FOREHAND_TARGETS = {
    "x_factor": (15.0, 25.0, 35.0),             # deg
    "shoulder_rotation": (60.0, 80.0, 100.0),   # deg
    "hip_rotation": (40.0, 60.0, 80.0),         # deg
    "knee_stability": (0.7, 0.9, 1.0),
    "elbow_angle": (80.0, 100.0, 120.0),        # deg
    "wrist_position": (0.6, 0.8, 1.0),
}

# Overrides applied on top of the professional targets
_SKILL_TARGETS = {
    "intermediate": {
        "x_factor": (10.0, 20.0, 30.0),
        "shoulder_rotation": (50.0, 70.0, 90.0),
        "hip_rotation": (30.0, 50.0, 70.0),
    },
    "beginner": {
        "x_factor": (5.0, 15.0, 25.0),
        "shoulder_rotation": (40.0, 60.0, 80.0),
        "hip_rotation": (20.0, 40.0, 60.0),
        "knee_stability": (0.6, 0.8, 0.9),
    },
}

_FOREHAND_TIMING = {                            # seconds
    "early_prep_duration": (0.2, 0.25, 0.3),
    "late_prep_duration": (0.3, 0.35, 0.4),
    "acceleration_duration": (0.1, 0.15, 0.2),
    "impact_duration": (0.02, 0.05, 0.08),
    "follow_through_duration": (0.2, 0.25, 0.3),
}

_SKILL_TEXT = {
    "professional": ("Professional Forehand", "Optimal biomechanical form for professional tennis forehand"),
    "intermediate": ("Intermediate Forehand", "Modified form suitable for intermediate players"),
    "beginner": ("Beginner Forehand", "Simplified form for beginners focusing on fundamentals"),
}


def forehand_template(skill_level: str = "professional", seed: int = 0) -> ProTemplate:
    """Built-in forehand; levels without their own overrides ("advanced") get the professional targets."""
    level = (skill_level or "professional").strip().lower()
    if level not in SKILL_LEVELS:
        raise ValueError(f"Unknown skill level {skill_level!r}; expected one of {SKILL_LEVELS}")
    if level not in _SKILL_TARGETS:
        level = "professional"
    rng = np.random.RandomState(seed)
    phases = {
        phase: {k: smooth_curve(length, s, e, pat, rng) for k, (s, e, pat) in shapes.items()}
        for phase, length, shapes in _FOREHAND_SHAPES
    }
    targets = dict(_FOREHAND_TARGETS)
    targets.update(_SKILL_TARGETS.get(level, {}))
    name, desc = _SKILL_TEXT[level]
    return ProTemplate(
        name=name,
        description=desc,
        skill_level=level,
        stroke_type="forehand",
        phases=phases,
        biomechanical_targets=targets,
        timing=dict(_FOREHAND_TIMING),
    )


def empty_template(stroke_type: str = "forehand") -> ProTemplate:
    """Fallback: every phase present with no data."""
    return ProTemplate(
        name=f"{stroke_type} (fallback)",
        description="No reference data available",
        stroke_type=stroke_type,
        phases={ph: {} for ph in PHASES},
    )


# ========= IO =========

def template_path(stroke_type: str, template_dir: str = "templates") -> str:
    return os.path.join(template_dir, f"{stroke_type}.json")


def load_template(
    stroke_type: str,
    template_dir: str = "templates",
    builtin_fallback: bool = False,
) -> ProTemplate:
    """
    Load {template_dir}/{stroke_type}.json.

    On a missing or unreadable file, logs a warning and returns the built-in
    template (forehand with builtin_fallback=True) or else empty_template.
    """
    if stroke_type not in STROKE_TYPES:
        raise ValueError(f"Unknown stroke type {stroke_type!r}; expected one of {STROKE_TYPES}")

    def _fallback(reason: str) -> ProTemplate:
        logger.warning("Template %s.json %s, using fallback", stroke_type, reason)
        if builtin_fallback and stroke_type == "forehand":
            return forehand_template()
        return empty_template(stroke_type)

    path = template_path(stroke_type, template_dir)
    if not os.path.isfile(path):
        return _fallback("not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return ProTemplate.from_dict(raw, stroke_type=stroke_type)
    except (OSError, ValueError, KeyError, TypeError) as e:
        return _fallback(f"could not be read ({e})")


def save_template(template: ProTemplate, path: str) -> str:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(template.to_dict(), f, indent=2)
    return path


# ========= Ingest =========

def normalize_pose(pose: Pose) -> Pose:
    """Scale all coordinates by the hip width; unchanged when hips are missing or coincide."""
    lh, rh = pose.get(LEFT_HIP), pose.get(RIGHT_HIP)
    if lh is None or rh is None:
        logger.debug("normalize_pose: missing hip landmarks")
        return pose
    width = float(np.linalg.norm(lh - rh))
    if width < EPS:
        logger.debug("normalize_pose: zero hip width")
        return pose
    return pose.with_points(np.asarray(pose.xyz) / width)


def phase_series_from_frames(
    frames: Sequence[Frame],
    fps: float,
    normalize: bool = True,
    handedness: str = "R",
) -> Dict[str, np.ndarray]:
    """Template series for one phase of a recorded reference swing."""
    if normalize:
        frames = [Frame(fr.timestamp, normalize_pose(fr.pose)) for fr in frames]
    feats = extract_movement_features(frames, fps=fps, handedness=handedness)
    side = side_for_handedness(handedness)
    angles = [compute_angles(fr.pose, side) for fr in frames]
    out = {k: np.array([getattr(f, k) for f in feats], dtype=np.float64)
           for k in TEMPLATE_KEYS if k not in ("elbow_angle", "wrist_position")}
    out["elbow_angle"] = np.array([a.elbow for a in angles], dtype=np.float64)
    out["wrist_position"] = np.array([a.hand_height for a in angles], dtype=np.float64)
    return out


def template_from_frames(
    frames_by_phase: Mapping[str, Sequence[Frame]],
    fps: float,
    name: str = "Custom Template",
    stroke_type: str = "forehand",
    skill_level: str = "professional",
    normalize: bool = True,
    handedness: str = "R",
) -> ProTemplate:
    """Build a template from a reference player's frames, already split by phase."""
    unknown = set(frames_by_phase) - set(PHASES)
    if unknown:
        raise ValueError(f"Unknown phase names: {sorted(unknown)}")
    phases = {
        ph: phase_series_from_frames(frames_by_phase[ph], fps, normalize, handedness)
        for ph in PHASES if ph in frames_by_phase
    }
    base = forehand_template(skill_level) if stroke_type == "forehand" else None
    return ProTemplate(
        name=name,
        description=f"Ingested from {sum(len(v) for v in frames_by_phase.values())} frames",
        skill_level=skill_level,
        stroke_type=stroke_type,
        phases=phases,
        biomechanical_targets=base.biomechanical_targets if base else {},
        timing=base.timing if base else {},
    )


# ========= Evaluation =========

@dataclass
class TemplateValidation:
    is_valid: bool
    score: float
    feedback: List[str]


def _as_mapping(metrics: Any) -> Dict[str, Any]:
    if isinstance(metrics, Mapping):
        return {_snake(k): v for k, v in metrics.items()}
    if hasattr(metrics, "to_dict"):
        return dict(metrics.to_dict())
    raise TypeError(f"Cannot read metrics from {type(metrics).__name__}")


def validate_against_template(
    metrics: Union[Mapping[str, float], Any],
    template: ProTemplate,
    pass_score: float = 0.7,
) -> TemplateValidation:
    """Score each metric present in both `metrics` and the template's target ranges."""
    values = _as_mapping(metrics)
    feedback: List[str] = []
    scores: List[float] = []
    for key, target in template.biomechanical_targets.items():
        if values.get(key) is None:
            continue
        v = float(values[key])
        if target.contains(v):
            s = target.score(v)
            scores.append(s)
            if s < pass_score:
                feedback.append(
                    f"{key} needs improvement: {v:.2f} "
                    f"(target: {target.optimal} ± {(target.max - target.min) / 2})"
                )
        else:
            feedback.append(f"{key} out of range: {v:.2f} (target: {target.min}-{target.max})")

    final = float(np.mean(scores)) if scores else 0.0
    if not feedback:
        feedback.append("Excellent form! All biomechanical targets met.")
    return TemplateValidation(is_valid=final >= pass_score, score=final, feedback=feedback)


def evaluate_phase_timing(
    segments: Sequence[PhaseSegment],
    fps: float,
    template: ProTemplate,
) -> Dict[str, Dict[str, Any]]:
    """Per-phase duration (s) against the template's timing targets."""
    out: Dict[str, Dict[str, Any]] = {}
    for seg in segments:
        key = TIMING_KEY_BY_PHASE.get(seg.phase)
        target = template.timing.get(key) if key else None
        if target is None:
            continue
        duration = seg.length / float(fps)
        out[seg.phase] = {
            "duration": duration,
            "target": target.to_dict(),
            "in_range": target.contains(duration),
            "score": target.score(duration),
        }
    return out


__all__ = [
    "STROKE_TYPES", "SKILL_LEVELS", "TEMPLATE_KEYS", "TIMING_KEY_BY_PHASE",
    "TargetRange", "ProTemplate", "TemplateValidation",
    "smooth_step", "smooth_curve",
    "forehand_template", "empty_template",
    "template_path", "load_template", "save_template",
    "normalize_pose", "phase_series_from_frames", "template_from_frames",
    "validate_against_template", "evaluate_phase_timing",
]
