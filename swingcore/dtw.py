# swingcore/dtw.py
#
# Banded, weighted dynamic time warping between two multi-feature series.
#
# Series are (T, K) arrays (a 1-D series is treated as K=1). The cost matrix
# is only filled inside a Sakoe-Chiba band, so runtime is O((n+m) * W).
#
# Tie-break on equal predecessor costs is fixed: up (i-1, j), then left
# (i, j-1), then diagonal (i-1, j-1). Path shape feeds phase-shift
# estimation, so this order is part of the contract.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from swingcore.config import SIMILARITY_COST_SCALE, DTWOptions, dtw_options_from_mapping

Path = List[Tuple[int, int]]
OptionsLike = Union[DTWOptions, Mapping[str, Any], None]

# backtrack codes
_UP, _LEFT, _DIAG = 0, 1, 2
_STEP = {_UP: (-1, 0), _LEFT: (0, -1), _DIAG: (-1, -1)}


@dataclass
class DTWResult:
    cost: float
    path: Path = field(default_factory=list)
    normalized_cost: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cost": self.cost,
            "path": [list(p) for p in self.path],
            "normalized_cost": self.normalized_cost,
        }


@dataclass
class AlignmentResult:
    similarity: float
    alignment: Path
    phase_shift: float
    cost: float
    normalized_cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "similarity": self.similarity,
            "alignment": [list(p) for p in self.alignment],
            "phase_shift": self.phase_shift,
            "cost": self.cost,
            "normalized_cost": self.normalized_cost,
        }


# -------------------------------------------------------------------------
# Preprocessing
# -------------------------------------------------------------------------

def _as_series(x: Any) -> np.ndarray:
    a = np.asarray(x, dtype=np.float64)
    if a.size == 0:
        return np.zeros((0, a.shape[-1] if a.ndim == 2 else 0), dtype=np.float64)
    if a.ndim == 1:
        return a.reshape(-1, 1)
    if a.ndim != 2:
        raise ValueError(f"DTW series must be (T, K) arrays, got shape {a.shape}")
    return a


def smooth_series_2d(series: np.ndarray, window: int) -> np.ndarray:
    """Centered moving average per column; the window shrinks at the edges."""
    s = _as_series(series)
    if window <= 1 or s.shape[0] == 0:
        return s.copy()
    half = window // 2
    csum = np.vstack([np.zeros((1, s.shape[1])), np.cumsum(s, axis=0)])
    idx = np.arange(s.shape[0])
    lo = np.maximum(0, idx - half)
    hi = np.minimum(s.shape[0], idx + half + 1)
    return (csum[hi] - csum[lo]) / (hi - lo)[:, None]


def zscore_series(series: np.ndarray) -> np.ndarray:
    """Per-column z-score with population std; constant columns become 0."""
    s = _as_series(series)
    if s.shape[0] == 0:
        return s.copy()
    mu = s.mean(axis=0)
    sd = s.std(axis=0)
    out = np.zeros_like(s)
    ok = sd > 0
    out[:, ok] = (s[:, ok] - mu[ok]) / sd[ok]
    return out


# -------------------------------------------------------------------------
# Local distances
# -------------------------------------------------------------------------

def _euclidean(d: np.ndarray, w: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sqrt(np.sum(w * d * d)))


def _manhattan(d: np.ndarray, w: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sum(w * np.abs(d)))


def _cosine(d: np.ndarray, w: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    sw = np.sqrt(w)
    u, v = a * sw, b * sw
    nu, nv = float(np.linalg.norm(u)), float(np.linalg.norm(v))
    if nu == 0.0 or nv == 0.0:
        return 0.0 if np.array_equal(u, v) else 1.0
    return float(1.0 - np.clip(np.dot(u, v) / (nu * nv), -1.0, 1.0))


def _correlation(d: np.ndarray, w: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    sw = np.sqrt(w)
    u, v = a * sw, b * sw
    du, dv = u - u.mean(), v - v.mean()
    den = float(np.sqrt(np.dot(du, du) * np.dot(dv, dv)))
    if den == 0.0:
        return 0.0 if np.array_equal(u, v) else 1.0
    return float(1.0 - np.clip(np.dot(du, dv) / den, -1.0, 1.0))


_METRICS: Dict[str, Callable[..., float]] = {
    "euclidean": _euclidean,
    "manhattan": _manhattan,
    "cosine": _cosine,
    "correlation": _correlation,
}


def local_distance(
    a: Sequence[float],
    b: Sequence[float],
    weights: Optional[Sequence[float]] = None,
    metric: str = "euclidean",
) -> float:
    """
    Weighted distance between two feature vectors.

    euclidean    sqrt(sum w * d^2)
    manhattan    sum w * |d|
    cosine       1 - cos(sqrt(w) a, sqrt(w) b)
    correlation  1 - pearson(sqrt(w) a, sqrt(w) b)

    Raises ValueError when a, b and weights disagree in length.
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    w = np.ones_like(a) if weights is None else np.asarray(weights, dtype=np.float64).reshape(-1)
    if a.shape != b.shape or a.shape != w.shape:
        raise ValueError(
            f"Dimension mismatch in weighted distance: a={a.shape[0]}, b={b.shape[0]}, weights={w.shape[0]}"
        )
    try:
        fn = _METRICS[metric]
    except KeyError:
        raise ValueError(f"Unknown distance metric {metric!r}") from None
    return fn(a - b, w, a, b)


# -------------------------------------------------------------------------
# DTW
# -------------------------------------------------------------------------

def band_width(band: float, n: int, m: int) -> int:
    """
    Half-width of the band: max(1, floor(band * max(n, m))), then widened to
    |n - m| so (n, m) stays reachable. The widening goes past that formula on
    purpose; without it a short band over very unequal lengths has no path.
    """
    return max(1, int(np.floor(band * max(n, m))), abs(n - m))


def _resolve(options: OptionsLike) -> DTWOptions:
    return dtw_options_from_mapping(options)


def dtw_cost(A: Any, B: Any, options: OptionsLike = None) -> DTWResult:
    """
    Banded DTW alignment of A (n, K) against B (m, K).

    Returns cost D[n][m], the index path from (0, 0) to (n-1, m-1), and the
    normalized cost (cost / (n + m) when options.normalize, else cost).
    Empty input gives cost=inf, path=[], normalized_cost=1.
    """
    opts = _resolve(options)
    a, b = _as_series(A), _as_series(B)
    n, m = a.shape[0], b.shape[0]
    if n == 0 or m == 0:
        return DTWResult(cost=float("inf"), path=[], normalized_cost=1.0)
    if a.shape[1] != b.shape[1]:
        raise ValueError(f"DTW series have different feature counts: {a.shape[1]} vs {b.shape[1]}")

    k = a.shape[1]
    w = np.ones(k) if opts.weights is None else np.asarray(opts.weights, dtype=np.float64)
    if w.shape[0] != k:
        raise ValueError(f"DTW weights have length {w.shape[0]}, series have {k} features")

    if opts.smooth_window > 1:
        a = smooth_series_2d(a, opts.smooth_window)
        b = smooth_series_2d(b, opts.smooth_window)
    if opts.normalize:
        a = zscore_series(a)
        b = zscore_series(b)

    fn = _METRICS[opts.distance_metric]
    W = band_width(opts.band, n, m)

    D = np.full((n + 1, m + 1), np.inf)
    D[0, 0] = 0.0
    back = np.full((n + 1, m + 1), -1, dtype=np.int8)

    for i in range(1, n + 1):
        ai = a[i - 1]
        for j in range(max(1, i - W), min(m, i + W) + 1):
            bj = b[j - 1]
            d = fn(ai - bj, w, ai, bj)
            best, code = D[i - 1, j], _UP
            if D[i, j - 1] < best:
                best, code = D[i, j - 1], _LEFT
            if D[i - 1, j - 1] < best:
                best, code = D[i - 1, j - 1], _DIAG
            D[i, j] = d + best
            back[i, j] = code

    path: Path = []
    i, j = n, m
    while i > 0 and j > 0:
        path.append((i - 1, j - 1))
        di, dj = _STEP[int(back[i, j])]
        i, j = i + di, j + dj
    path.reverse()

    cost = float(D[n, m])
    normalized = cost / (n + m) if opts.normalize else cost
    return DTWResult(cost=cost, path=path, normalized_cost=float(normalized))


def dtw_cost_simple(A: Any, B: Any, w: Optional[Sequence[float]] = None, band: float = 0.12) -> float:
    """Normalized DTW cost with default options and optional weights."""
    return dtw_cost(A, B, DTWOptions(band=band, weights=None if not w else tuple(w))).normalized_cost


def _similarity_from(result: DTWResult, n: int, m: int, k: int) -> float:
    if not np.isfinite(result.cost):
        return 0.0
    max_cost = np.sqrt(max(k, 1)) * max(n, m) * SIMILARITY_COST_SCALE
    if max_cost <= 0:
        return 0.0
    return float(min(1.0, max(0.0, 1.0 - result.normalized_cost / max_cost)))


def calculate_similarity(A: Any, B: Any, options: OptionsLike = None) -> float:
    """
    1 - normalized_cost / (sqrt(K) * max(n, m) * SIMILARITY_COST_SCALE), in [0, 1].
    The denominator is a worst-case heuristic, not a proven bound.
    """
    a, b = _as_series(A), _as_series(B)
    res = dtw_cost(a, b, options)
    return _similarity_from(res, a.shape[0], b.shape[0], a.shape[1])


def phase_shift_from_path(path: Path) -> float:
    """
    Mean (di - dj) between consecutive diagonal steps of the path.

    Runs of horizontal/vertical moves between two diagonal steps count
    toward the next diagonal step, so a positive value means A needed more
    samples than B to cover the same motion (A lags B).
    """
    if len(path) < 2:
        return 0.0
    anchors = [path[0]]
    for (pi, pj), (ci, cj) in zip(path[:-1], path[1:]):
        if ci > pi and cj > pj:
            anchors.append((ci, cj))
    if len(anchors) < 2:
        return 0.0
    shifts = [(ci - pi) - (cj - pj) for (pi, pj), (ci, cj) in zip(anchors[:-1], anchors[1:])]
    return float(np.mean(shifts))


def find_best_alignment(A: Any, B: Any, options: OptionsLike = None) -> AlignmentResult:
    """Similarity, alignment path and mean phase shift from one DTW run."""
    a, b = _as_series(A), _as_series(B)
    res = dtw_cost(a, b, options)
    return AlignmentResult(
        similarity=_similarity_from(res, a.shape[0], b.shape[0], a.shape[1]),
        alignment=res.path,
        phase_shift=phase_shift_from_path(res.path),
        cost=res.cost,
        normalized_cost=res.normalized_cost,
    )


__all__ = [
    "DTWResult", "AlignmentResult",
    "smooth_series_2d", "zscore_series", "local_distance", "band_width",
    "dtw_cost", "dtw_cost_simple", "calculate_similarity",
    "phase_shift_from_path", "find_best_alignment",
]
