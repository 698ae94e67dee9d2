import numpy as np
import pytest

from incslice import IncSliceLine


@pytest.fixture
def scenario():
    """Six rows, two features with two categories each."""
    X = np.array([[1, 1], [1, 2], [2, 1], [2, 2], [1, 1], [2, 2]])
    errors = np.array([5, 1, 1, 1, 5, 1], dtype=float)
    return X, errors


@pytest.fixture
def make_data():
    """Random categorical data with a planted high-error slice and some zero cells."""
    def _make(seed, m=240, domains=(3, 4, 2, 3)):
        rng = np.random.default_rng(seed)
        X = np.column_stack([rng.integers(0, d + 1, size=m) for d in domains])
        errors = rng.exponential(1.0, size=m).round(2)
        errors[(X[:, 0] == 1) & (X[:, 1] == 2)] += 3.0
        errors[rng.random(m) < 0.2] = 0.0
        return X, errors
    return _make


@pytest.fixture
def run():
    """Fit an IncSliceLine and return its result."""
    def _run(X, errors, prior=None, removed=None, **params):
        params.setdefault('k', 5)
        params.setdefault('min_support', 8)
        finder = IncSliceLine(**params)
        finder.fit(X, errors, prior=prior, removed=removed)
        return finder.get_result()
    return _run


@pytest.fixture
def assert_same_top_k():
    """Top-k of two results hold the same slices, in the same order, with identical stats."""
    def _check(a, b):
        assert a.top_k_matrix.tolist() == b.top_k_matrix.tolist()
        np.testing.assert_array_equal(a.top_k_stats, b.top_k_stats)
    return _check
