# swingcore/feature_table.py
# Tabular (pandas) views of feature series and comparison results.

from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd

from swingcore.compare_metrics import ComparisonResult
from swingcore.features import FEATURE_KEYS, MovementFeatures
from swingcore.phase_segmentation import PHASES, PhaseSegment, phase_labels


def features_dataframe(
    features: Sequence[MovementFeatures],
    segments: Optional[Sequence[PhaseSegment]] = None,
) -> pd.DataFrame:
    """
    One row per frame: frame, t, every feature column, and a `phase`
    column when segments are given (None outside every segment).
    """
    df = pd.DataFrame([f.to_dict() for f in features], columns=["t", *FEATURE_KEYS])
    df.insert(0, "frame", range(len(df)))
    if segments is not None:
        df["phase"] = phase_labels(segments, len(df))
    return df


def phase_summary_dataframe(result: ComparisonResult) -> pd.DataFrame:
    """One row per scored phase, in swing order."""
    rows = []
    for ph in PHASES:
        ps = result.phase_scores.get(ph)
        if ps is None:
            continue
        rows.append({
            "phase": ph,
            "score": ps.score,
            "biomechanical_score": ps.biomechanical_score,
            "timing_score": ps.timing_score,
            "confidence": ps.confidence,
            "key_events": "; ".join(ps.key_events),
        })
    return pd.DataFrame(
        rows,
        columns=["phase", "score", "biomechanical_score", "timing_score", "confidence", "key_events"],
    )


def phase_means_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Mean of every feature column per phase (input from features_dataframe with segments)."""
    if "phase" not in df.columns:
        raise KeyError("DataFrame has no 'phase' column; pass segments to features_dataframe")
    means = df.dropna(subset=["phase"]).groupby("phase")[list(FEATURE_KEYS)].mean()
    return means.reindex([p for p in PHASES if p in means.index])


__all__ = ["features_dataframe", "phase_summary_dataframe", "phase_means_dataframe"]
