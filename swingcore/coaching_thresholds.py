# swingcore/coaching_thresholds.py
# Centralized thresholds + message texts for swing recommendations.

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

# =========================
# Thresholds (τ) by metric
# =========================
# Interpretation: value < TAU[key] => worth talking about.

TAU: Dict[str, float] = {
    # Per-phase combined score
    "phase_score": 0.7,

    # Windowed quality, all in [0, 1]
    "stability": 0.6,
    "symmetry": 0.6,
    "balance": 0.6,
    "knee_stability": 0.6,

    # Shoulder/hip separation
    "x_factor": 15.0,               # degrees

    # Whole-swing alignment
    "similarity": 0.6,
}

# =========================
# Messages
# =========================

PHASE_MESSAGE = "Improve {phase} phase: Focus on biomechanical form and timing"

MESSAGES: Dict[str, str] = {
    "stability": "Improve movement stability: Reduce unnecessary motion and maintain consistent form",
    "symmetry": "Work on bilateral symmetry: Ensure both sides of your body move equally",
    "balance": "Improve balance: Focus on maintaining center of mass over your base of support",
    "x_factor": "Increase X-factor: Generate more separation between shoulder and hip rotation",
    "knee_stability": "Improve knee stability: Maintain slight knee flexion throughout the movement",
    "similarity": "Overall form needs improvement: Focus on matching the professional template more closely",
}

# Order biomechanical checks are reported in
BIOMECH_CHECKS: List[str] = ["stability", "symmetry", "balance", "x_factor", "knee_stability"]

POSITIVE_MESSAGE = "Excellent form! Keep practicing to maintain consistency"
NO_DATA_MESSAGE = "No data available for analysis"

MAX_RECOMMENDATIONS = 5


# =========================
# Helpers
# =========================

def below_threshold(metric: str, value: Optional[float]) -> bool:
    """True if value is under the configured τ for this metric. None never triggers."""
    if value is None or metric not in TAU:
        return False
    return float(value) < TAU[metric]


def phase_message(phase: str) -> str:
    return PHASE_MESSAGE.format(phase=phase)


def triggered_checks(metrics: Mapping[str, Any]) -> List[str]:
    """Biomechanical check keys whose value in `metrics` is below τ, in report order."""
    return [k for k in BIOMECH_CHECKS if below_threshold(k, metrics.get(k))]


__all__ = [
    "TAU",
    "MESSAGES",
    "PHASE_MESSAGE",
    "BIOMECH_CHECKS",
    "POSITIVE_MESSAGE",
    "NO_DATA_MESSAGE",
    "MAX_RECOMMENDATIONS",
    "below_threshold",
    "phase_message",
    "triggered_checks",
]
