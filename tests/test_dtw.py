# tests/test_dtw.py
#
# Banded weighted DTW: hand-checked toy alignments, metric definitions,
# symmetry/band properties and the empty-input contract.

import numpy as np
import pytest

from swingcore.config import DTWOptions
from swingcore.dtw import (
    band_width,
    calculate_similarity,
    dtw_cost,
    dtw_cost_simple,
    find_best_alignment,
    local_distance,
    phase_shift_from_path,
    smooth_series_2d,
    zscore_series,
)

RAW_FULL_BAND = DTWOptions(band=1.0, normalize=False)


def _increasing(n, k=2):
    base = np.linspace(0.0, 1.0, n)
    return np.stack([base * (c + 1) + base ** 2 for c in range(k)], axis=1)


# ---------- toy alignments ----------

def test_toy_alignment_cost_and_path():
    res = dtw_cost([[0.0], [1.0], [2.0]], [[0.0], [2.0], [4.0]], RAW_FULL_BAND)
    assert res.cost == pytest.approx(3.0)
    assert res.normalized_cost == pytest.approx(3.0)
    assert res.path == [(0, 0), (1, 1), (2, 1), (2, 2)]


def test_toy_alignment_with_repeated_start():
    res = dtw_cost([0.0, 1.0, 2.0], [0.0, 0.0, 1.0, 2.0], RAW_FULL_BAND)
    assert res.cost == 0.0
    assert res.path == [(0, 0), (0, 1), (1, 2), (2, 3)]
    assert phase_shift_from_path(res.path) == pytest.approx(-0.5)


def test_identity_gives_zero_cost_and_diagonal_path():
    A = _increasing(25)
    res = dtw_cost(A, A)
    assert res.cost == 0.0
    assert res.path == [(i, i) for i in range(25)]
    assert calculate_similarity(A, A) == 1.0
    assert dtw_cost_simple(A, A) == 0.0


def test_repeated_rows_align_to_themselves_off_the_diagonal():
    # up/left win ties over the diagonal, so the duplicated first row is
    # absorbed by a left-then-up detour; the cost stays zero
    x = [[0.0], [0.0], [1.0], [2.0]]
    res = dtw_cost(x, x, RAW_FULL_BAND)
    assert res.cost == 0.0
    assert res.path == [(0, 0), (0, 1), (1, 1), (2, 2), (3, 3)]


def test_path_endpoints_and_monotone_steps():
    rng = np.random.RandomState(3)
    A, B = rng.randn(30, 3), rng.randn(22, 3)
    path = dtw_cost(A, B, {"band": 0.2}).path
    assert path[0] == (0, 0)
    assert path[-1] == (29, 21)
    for (pi, pj), (ci, cj) in zip(path[:-1], path[1:]):
        assert (ci - pi, cj - pj) in {(1, 0), (0, 1), (1, 1)}


# ---------- properties ----------

@pytest.mark.parametrize("metric", ["euclidean", "manhattan", "cosine", "correlation"])
def test_symmetric_cost(metric):
    rng = np.random.RandomState(11)
    A, B = rng.randn(18, 3), rng.randn(26, 3)
    opts = DTWOptions(band=0.3, distance_metric=metric)
    assert dtw_cost(A, B, opts).cost == pytest.approx(dtw_cost(B, A, opts).cost)


def test_wider_band_never_costs_more():
    rng = np.random.RandomState(5)
    A, B = rng.randn(40, 2), rng.randn(35, 2)
    costs = [dtw_cost(A, B, DTWOptions(band=b)).cost for b in (0.05, 0.1, 0.3, 1.0)]
    for narrow, wide in zip(costs[:-1], costs[1:]):
        assert wide <= narrow + 1e-12


def test_normalization_removes_scale_and_offset():
    A = _increasing(20, k=1)
    res = dtw_cost(A, 2.0 * A + 5.0)
    assert res.cost == pytest.approx(0.0, abs=1e-9)
    raw = dtw_cost(A, 2.0 * A + 5.0, DTWOptions(normalize=False))
    assert raw.cost > 0.0
    assert raw.normalized_cost == raw.cost


def test_normalized_cost_divides_by_total_length():
    rng = np.random.RandomState(2)
    A, B = rng.randn(12, 2), rng.randn(9, 2)
    res = dtw_cost(A, B)
    assert res.normalized_cost == pytest.approx(res.cost / 21)


def test_similarity_in_unit_interval():
    rng = np.random.RandomState(9)
    for _ in range(5):
        A, B = rng.randn(15, 4) * 10, rng.randn(20, 4)
        s = calculate_similarity(A, B, DTWOptions(normalize=False))
        assert 0.0 <= s <= 1.0


def test_weights_change_the_cost():
    A = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    B = np.array([[0.0, 1.0], [1.0, 1.0], [2.0, 1.0]])
    plain = dtw_cost(A, B, DTWOptions(normalize=False)).cost
    heavy = dtw_cost(A, B, DTWOptions(normalize=False, weights=(1.0, 4.0))).cost
    assert plain == pytest.approx(3.0)
    assert heavy == pytest.approx(6.0)


# ---------- edge cases ----------

def test_empty_series():
    res = dtw_cost([], [[1.0, 2.0]])
    assert res.cost == float("inf")
    assert res.path == []
    assert res.normalized_cost == 1.0
    assert calculate_similarity(np.zeros((0, 2)), np.ones((4, 2))) == 0.0
    al = find_best_alignment(np.ones((3, 2)), np.zeros((0, 2)))
    assert al.similarity == 0.0
    assert al.alignment == []
    assert al.phase_shift == 0.0


def test_dimension_mismatch_raises():
    with pytest.raises(ValueError):
        dtw_cost(np.zeros((4, 2)), np.zeros((4, 3)))
    with pytest.raises(ValueError):
        dtw_cost(np.zeros((4, 2)), np.zeros((4, 2)), DTWOptions(weights=(1.0, 1.0, 1.0)))
    with pytest.raises(ValueError):
        local_distance([1.0, 2.0], [1.0])


def test_options_from_mapping_match_dataclass():
    rng = np.random.RandomState(4)
    A, B = rng.randn(10, 2), rng.randn(13, 2)
    a = dtw_cost(A, B, {"band": 0.5, "distanceMetric": "manhattan", "normalize": False})
    b = dtw_cost(A, B, DTWOptions(band=0.5, distance_metric="manhattan", normalize=False))
    assert a.cost == b.cost and a.path == b.path
    with pytest.raises(ValueError):
        dtw_cost(A, B, {"bandwidth": 0.5})


@pytest.mark.parametrize("bad", [{"band": 0.0}, {"band": 1.5}, {"distance_metric": "chebyshev"},
                                 {"smooth_window": 0}, {"weights": (1.0, -1.0)}])
def test_invalid_options_raise(bad):
    with pytest.raises(ValueError):
        DTWOptions(**bad)


def test_band_width():
    assert band_width(0.12, 10, 10) == 1
    assert band_width(0.25, 100, 100) == 25
    assert band_width(0.25, 100, 40) == 60


# ---------- local distances ----------

def test_local_distance_definitions():
    assert local_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)
    assert local_distance([0.0, 0.0], [3.0, 4.0], [1.0, 4.0]) == pytest.approx(np.sqrt(73.0))
    assert local_distance([0.0, 0.0], [3.0, 4.0], [1.0, 2.0], "manhattan") == pytest.approx(11.0)
    assert local_distance([1.0, 0.0], [0.0, 1.0], metric="cosine") == pytest.approx(1.0)
    assert local_distance([1.0, 2.0], [2.0, 4.0], metric="cosine") == pytest.approx(0.0, abs=1e-12)
    assert local_distance([1.0, 2.0, 3.0], [2.0, 4.0, 6.0], metric="correlation") == pytest.approx(0.0, abs=1e-12)
    assert local_distance([1.0, 2.0, 3.0], [3.0, 2.0, 1.0], metric="correlation") == pytest.approx(2.0)
    with pytest.raises(ValueError):
        local_distance([1.0], [1.0], metric="chebyshev")


def test_degenerate_cosine_and_correlation():
    assert local_distance([0.0, 0.0], [0.0, 0.0], metric="cosine") == 0.0
    assert local_distance([0.0, 0.0], [1.0, 0.0], metric="cosine") == 1.0
    assert local_distance([2.0, 2.0], [2.0, 2.0], metric="correlation") == 0.0
    assert local_distance([2.0, 2.0], [1.0, 3.0], metric="correlation") == 1.0


# ---------- preprocessing / phase shift ----------

def test_smoothing_and_zscore():
    np.testing.assert_allclose(smooth_series_2d([[0.0], [3.0], [6.0]], 3), [[1.5], [3.0], [4.5]])
    z = zscore_series([[1.0, 5.0], [3.0, 5.0]])
    np.testing.assert_allclose(z, [[-1.0, 0.0], [1.0, 0.0]])


def test_phase_shift_from_path():
    assert phase_shift_from_path([(0, 0), (1, 0), (2, 1), (3, 2)]) == pytest.approx(0.5)
    assert phase_shift_from_path([(i, i) for i in range(6)]) == 0.0
    assert phase_shift_from_path([(0, 0)]) == 0.0
    assert phase_shift_from_path([(0, 0), (0, 1), (0, 2)]) == 0.0


def test_find_best_alignment_matches_dtw():
    rng = np.random.RandomState(8)
    A, B = rng.randn(16, 2), rng.randn(16, 2)
    res = dtw_cost(A, B)
    al = find_best_alignment(A, B)
    assert al.alignment == res.path
    assert al.cost == res.cost
    assert al.similarity == calculate_similarity(A, B)
    assert set(al.to_dict()) == {"similarity", "alignment", "phase_shift", "cost", "normalized_cost"}
