# swingcore/__init__.py
from .biomechanics import calculate_movement_quality, compute_angles
from .compare_metrics import ComparisonResult, compare_poses
from .config import ComparisonOptions, DTWOptions
from .dtw import calculate_similarity, dtw_cost, find_best_alignment
from .features import extract_movement_features
from .phase_segmentation import detect_key_events, segment_phases
from .pose import Frame, Pose
from .pro_templates import ProTemplate, forehand_template, load_template

__all__ = [
    "Pose", "Frame",
    "compute_angles", "calculate_movement_quality",
    "extract_movement_features",
    "detect_key_events", "segment_phases",
    "DTWOptions", "dtw_cost", "calculate_similarity", "find_best_alignment",
    "ComparisonOptions", "ComparisonResult", "compare_poses",
    "ProTemplate", "forehand_template", "load_template",
]
