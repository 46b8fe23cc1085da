# swingcore/config.py
# Calibration constants and option records for the analysis pipeline.
#
# Every tunable number used by the algorithms lives here so recalibration
# never means touching algorithm code. Option dataclasses validate
# themselves; malformed configuration raises ValueError.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

# =========================
# Numeric guards
# =========================

EPS = 1e-6          # vectors shorter than this are treated as degenerate
MIN_DT = 1e-3       # floor for frame intervals in finite differences
DEFAULT_FPS = 30.0

# Joints with visibility below this are treated as not detected.
VISIBILITY_THRESHOLD = 0.5

# =========================
# Calibration constants
# =========================
# Scales, not physical laws: they map raw magnitudes onto [0, 1] scores.

STABILITY_VARIANCE_SCALE = 1000.0   # position variance that maps to stability 0
FLUIDITY_ACCEL_SCALE = 100.0        # mean |wrist accel| that maps to fluidity 0
FLUIDITY_SMOOTH_WINDOW = 3          # moving-average window before differencing
KNEE_OPTIMAL_FLEXION = 0.15         # |hip_y - knee_y| / hip_y at full knee score
SIMILARITY_COST_SCALE = 1.0         # multiplier on the DTW worst-case cost bound

MIN_FRAMES_STABILITY = 3
MIN_FRAMES_QUALITY = 5
MIN_FRAMES_EVENTS = 5
MIN_FRAMES_SEGMENTATION = 8
MIN_FRAMES_STREAMING = 10

# Default per-feature weights wherever weighting is requested.
DEFAULT_FEATURE_WEIGHTS: Dict[str, float] = {
    "hand_y": 1.2,
    "hand_dist": 1.0,
    "torso_rot": 1.5,
    "hand_speed": 1.3,
    "shoulder_rotation": 1.4,
    "hip_rotation": 1.3,
    "knee_stability": 1.1,
    "elbow": 1.0,
    "wrist": 0.8,
}

DISTANCE_METRICS: Tuple[str, ...] = ("euclidean", "manhattan", "cosine", "correlation")
REFERENCE_WINDOW_MODES: Tuple[str, ...] = ("relative", "fixed")


# =========================
# Option records
# =========================

@dataclass(frozen=True)
class DTWOptions:
    """
    band           Sakoe-Chiba half-width as a fraction of max(n, m), in (0, 1].
    weights        per-dimension weights; None means all ones.
    distance_metric one of DISTANCE_METRICS.
    normalize      z-score each series per feature AND divide cost by (n + m).
    smooth_window  centered moving-average window applied before alignment.
    """
    band: float = 0.12
    weights: Optional[Tuple[float, ...]] = None
    distance_metric: str = "euclidean"
    normalize: bool = True
    smooth_window: int = 1

    def __post_init__(self) -> None:
        try:
            band = float(self.band)
        except (TypeError, ValueError):
            raise ValueError(f"DTW band must be a number, got {self.band!r}") from None
        if not (0.0 < band <= 1.0):
            raise ValueError(f"DTW band must be in (0, 1], got {band}")
        object.__setattr__(self, "band", band)

        if self.distance_metric not in DISTANCE_METRICS:
            raise ValueError(
                f"Unknown distance metric {self.distance_metric!r}; "
                f"expected one of {DISTANCE_METRICS}"
            )
        if isinstance(self.smooth_window, bool) or int(self.smooth_window) != self.smooth_window:
            raise ValueError(f"smooth_window must be an integer, got {self.smooth_window!r}")
        if int(self.smooth_window) < 1:
            raise ValueError(f"smooth_window must be >= 1, got {self.smooth_window}")
        object.__setattr__(self, "smooth_window", int(self.smooth_window))

        if self.weights is not None:
            w = tuple(float(x) for x in self.weights)
            if any(x < 0.0 for x in w):
                raise ValueError("DTW weights must be non-negative")
            object.__setattr__(self, "weights", w)


@dataclass(frozen=True)
class ComparisonOptions:
    """
    Configuration surface of `compare_poses`.

    `weights` maps feature names to DTW per-dimension weights; the comparator
    builds the weight vector for each alignment from it, so
    `dtw_options.weights` must be left unset here.
    """
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_FEATURE_WEIGHTS))
    dtw_options: DTWOptions = field(default_factory=DTWOptions)
    min_confidence: float = 0.5
    enable_biomechanical_analysis: bool = True
    enable_phase_analysis: bool = True
    fps: float = DEFAULT_FPS
    handedness: str = "R"
    reference_window: str = "relative"

    def __post_init__(self) -> None:
        if not isinstance(self.dtw_options, DTWOptions):
            raise ValueError("dtw_options must be a DTWOptions instance")
        if self.dtw_options.weights is not None:
            raise ValueError(
                "Set per-feature weights through ComparisonOptions.weights; "
                "dtw_options.weights cannot fit both the phase and the global alignment"
            )
        merged = dict(DEFAULT_FEATURE_WEIGHTS)
        for k, v in dict(self.weights or {}).items():
            try:
                v = float(v)
            except (TypeError, ValueError):
                raise ValueError(f"Feature weight for {k!r} must be a number, got {v!r}") from None
            if v < 0.0:
                raise ValueError(f"Feature weight for {k!r} must be non-negative")
            merged[k] = v
        object.__setattr__(self, "weights", merged)

        try:
            min_confidence = float(self.min_confidence)
            fps = float(self.fps)
        except (TypeError, ValueError):
            raise ValueError(
                f"min_confidence and fps must be numbers, got {self.min_confidence!r} and {self.fps!r}"
            ) from None
        if not (0.0 <= min_confidence <= 1.0):
            raise ValueError(f"min_confidence must be in [0, 1], got {min_confidence}")
        if not fps > 0.0:
            raise ValueError(f"fps must be positive, got {fps}")
        object.__setattr__(self, "min_confidence", min_confidence)
        object.__setattr__(self, "fps", fps)
        if str(self.handedness).strip().upper() not in ("R", "L", "RIGHT", "LEFT"):
            raise ValueError(f"Unknown handedness: {self.handedness!r}")
        if self.reference_window not in REFERENCE_WINDOW_MODES:
            raise ValueError(
                f"Unknown reference_window {self.reference_window!r}; "
                f"expected one of {REFERENCE_WINDOW_MODES}"
            )

    def weight_vector(self, keys: Sequence[str]) -> Tuple[float, ...]:
        return tuple(float(self.weights.get(k, 1.0)) for k in keys)

    def dtw_for(self, keys: Sequence[str]) -> DTWOptions:
        """DTW options for an alignment over the given feature dimensions."""
        return replace(self.dtw_options, weights=self.weight_vector(keys))


# =========================
# Building options from plain mappings (e.g. decoded JSON)
# =========================

_CAMEL_ALIASES = {
    "distanceMetric": "distance_metric",
    "smoothWindow": "smooth_window",
    "dtwOptions": "dtw_options",
    "minConfidence": "min_confidence",
    "enableBiomechanicalAnalysis": "enable_biomechanical_analysis",
    "enablePhaseAnalysis": "enable_phase_analysis",
    "referenceWindow": "reference_window",
}


def _snake_keys(raw: Mapping[str, Any], allowed: Sequence[str], what: str) -> Dict[str, Any]:
    """Map keys to snake_case; a None value (JSON null) leaves the default in place."""
    out: Dict[str, Any] = {}
    for k, v in raw.items():
        key = _CAMEL_ALIASES.get(k, k)
        if key not in allowed:
            raise ValueError(f"Unknown {what} option: {k!r}")
        if v is None:
            continue
        out[key] = v
    return out


def dtw_options_from_mapping(raw: Optional[Mapping[str, Any]]) -> DTWOptions:
    if raw is None:
        return DTWOptions()
    if isinstance(raw, DTWOptions):
        return raw
    kw = _snake_keys(raw, [f.name for f in fields(DTWOptions)], "DTW")
    if kw.get("weights") is not None:
        kw["weights"] = tuple(kw["weights"])
    return DTWOptions(**kw)


def options_from_mapping(raw: Optional[Mapping[str, Any]]) -> ComparisonOptions:
    """Build ComparisonOptions from a dict with snake_case or camelCase keys."""
    if raw is None:
        return ComparisonOptions()
    if isinstance(raw, ComparisonOptions):
        return raw
    kw = _snake_keys(raw, [f.name for f in fields(ComparisonOptions)], "comparison")
    if "dtw_options" in kw:
        kw["dtw_options"] = dtw_options_from_mapping(kw["dtw_options"])
    if "weights" in kw:
        if not isinstance(kw["weights"], Mapping):
            raise ValueError(f"weights must map feature names to numbers, got {kw['weights']!r}")
        camel = {"handY": "hand_y", "handDist": "hand_dist", "torsoRot": "torso_rot",
                 "handSpeed": "hand_speed", "shoulderRotation": "shoulder_rotation",
                 "hipRotation": "hip_rotation", "kneeStability": "knee_stability"}
        kw["weights"] = {camel.get(k, k): v for k, v in dict(kw["weights"]).items()}
    return ComparisonOptions(**kw)


__all__ = [
    "EPS", "MIN_DT", "DEFAULT_FPS", "VISIBILITY_THRESHOLD",
    "STABILITY_VARIANCE_SCALE", "FLUIDITY_ACCEL_SCALE", "FLUIDITY_SMOOTH_WINDOW",
    "KNEE_OPTIMAL_FLEXION", "SIMILARITY_COST_SCALE",
    "MIN_FRAMES_STABILITY", "MIN_FRAMES_QUALITY", "MIN_FRAMES_EVENTS",
    "MIN_FRAMES_SEGMENTATION", "MIN_FRAMES_STREAMING",
    "DEFAULT_FEATURE_WEIGHTS", "DISTANCE_METRICS", "REFERENCE_WINDOW_MODES",
    "DTWOptions", "ComparisonOptions",
    "dtw_options_from_mapping", "options_from_mapping",
]
