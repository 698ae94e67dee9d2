"""End-to-end tests for SliceLine runs from scratch."""
import itertools

import numpy as np
import pytest

from incslice import IncSliceLine, InvalidParameterError, NotFittedError, SliceLine


def exhaustive_top_k(X, errors, k, min_support, alpha, max_level=None):
    """Score every slice of the lattice and rank eligible ones by (score desc, reverse-lex category)."""
    n_rows, n = X.shape
    e_avg = errors.sum() / n_rows
    domains = X.max(axis=0)
    max_level = max_level or n
    found = []
    for values in itertools.product(*[range(d + 1) for d in domains]):
        level = sum(v > 0 for v in values)
        if level == 0 or level > max_level:
            continue
        mask = np.ones(n_rows, dtype=bool)
        for j, v in enumerate(values):
            if v:
                mask &= X[:, j] == v
        size = mask.sum()
        # sequential sum in row order, as the evaluator accumulates
        total = sum(errors[mask].tolist())
        if size < min_support or total <= 0:
            continue
        sc = alpha * ((total / size) / e_avg - 1) - (1 - alpha) * (n_rows / size - 1)
        found.append((sc, tuple(reversed(values)), list(values)))
    found.sort(key=lambda t: (-t[0], t[1]))
    return [(values, sc) for sc, _, values in found[:k]]


class TestScenario:
    def test_top_one_slice(self, scenario):
        X, errors = scenario
        finder = SliceLine(k=1, min_support=2, alpha=0.5)
        slices = finder.find(X, errors)

        assert len(slices) == 1
        top = slices[0]
        assert top.to_string() == "f0=1"
        assert top.size == 3
        assert top.error == 11.0
        assert top.max_error == 5.0
        assert top.score == 0.5 * ((11 / 3) / (14 / 6) - 1) - 0.5 * (6 / 3 - 1)

    def test_tie_broken_by_canonical_id(self, scenario):
        X, errors = scenario
        slices = SliceLine(k=2, min_support=2).find(X, errors)
        # f0=1 and f1=1 score the same; f0=1 has the smaller id
        assert [s.to_string() for s in slices] == ["f0=1", "f1=1"]
        assert slices[0].score == slices[1].score

    def test_top_four_includes_pair(self, scenario):
        X, errors = scenario
        slices = SliceLine(k=4, min_support=2).find(X, errors)
        assert [s.to_string() for s in slices] == ["f0=1", "f1=1", "f0=1 AND f1=1", "f0=2"]
        pair = slices[2]
        assert pair.size == 2
        assert pair.error == 10.0
        assert pair.score == 0.5 * ((10 / 2) / (14 / 6) - 1) - 0.5 * (6 / 2 - 1)

    def test_trace(self, scenario):
        X, errors = scenario
        result = SliceLine(k=4, min_support=2).find_and_get_result(X, errors)
        trace = result.trace_frame()
        assert trace['level'].tolist() == [1, 2]
        assert trace.loc[0, 'generated'] == 4
        assert trace.loc[0, 'valid'] == 4
        assert trace.loc[1, 'max_score'] == result[0].score
        assert trace.loc[1, 'min_score'] == result[3].score

    def test_feature_names_in_output(self, scenario):
        X, errors = scenario
        finder = SliceLine(k=1, min_support=2)
        finder.fit(X, errors, feature_names=['color', 'shape'])
        assert finder.get_slices()[0].to_string() == "color=1"


class TestBoundaries:
    def test_zero_k_is_empty(self, scenario):
        X, errors = scenario
        assert SliceLine(k=0, min_support=2).find(X, errors) == []

    def test_support_above_row_count_is_empty(self, scenario):
        X, errors = scenario
        assert SliceLine(k=3, min_support=7).find(X, errors) == []

    def test_max_level_one_returns_single_predicates(self, make_data):
        X, errors = make_data(2)
        result = SliceLine(k=10, min_support=5, max_level=1).find_and_get_result(X, errors)
        assert len(result) > 0
        assert all(s.level == 1 for s in result)
        assert result.state.lattice.levels == [1]

    def test_all_zero_errors(self, scenario):
        X, _ = scenario
        assert SliceLine(k=3, min_support=1).find(X, np.zeros(6)) == []

    def test_empty_dataset(self):
        result = SliceLine(k=3, min_support=1).find_and_get_result(np.zeros((0, 2), dtype=int), np.zeros(0))
        assert len(result) == 0


class TestAgainstExhaustiveSearch:
    @pytest.mark.parametrize("seed,alpha,min_support", [(0, 0.5, 8), (1, 0.95, 5), (4, 0.2, 12)])
    @pytest.mark.parametrize("eval_mode", ['combined', 'blocked'])
    def test_matches_exhaustive_ranking(self, make_data, seed, alpha, min_support, eval_mode):
        X, errors = make_data(seed, m=200, domains=(3, 3, 2))
        k = 6
        result = SliceLine(k=k, min_support=min_support, alpha=alpha, eval_mode=eval_mode,
                           block_size=3).find_and_get_result(X, errors)
        expected = exhaustive_top_k(X, errors, k, min_support, alpha)

        assert result.top_k_matrix.tolist() == [values for values, _ in expected]
        np.testing.assert_allclose([s.score for s in result], [sc for _, sc in expected], rtol=1e-12)

    def test_feature_selection_same_result(self, make_data, assert_same_top_k):
        X, errors = make_data(9)
        plain = SliceLine(k=6, min_support=6).find_and_get_result(X, errors)
        selected = SliceLine(k=6, min_support=6, feature_selection=True).find_and_get_result(X, errors)
        assert_same_top_k(plain, selected)

    def test_threads_same_result(self, make_data, assert_same_top_k):
        X, errors = make_data(10)
        serial = SliceLine(k=6, min_support=6, block_size=2).find_and_get_result(X, errors)
        threaded = SliceLine(k=6, min_support=6, block_size=2, n_jobs=3).find_and_get_result(X, errors)
        assert_same_top_k(serial, threaded)


class TestFinderApi:
    def test_not_fitted(self):
        with pytest.raises(NotFittedError):
            SliceLine().get_slices()
        with pytest.raises(NotFittedError):
            IncSliceLine().get_state()

    def test_sliceline_rejects_prior_state(self, scenario):
        X, errors = scenario
        state = SliceLine(k=1, min_support=2).find_and_get_result(X, errors).state
        with pytest.raises(InvalidParameterError):
            SliceLine(k=1, min_support=2).fit(X, errors, prior=state)

    def test_params_and_repr(self):
        finder = IncSliceLine(k=3, pruning_strategy='score-only')
        params = finder.get_params()
        assert params['k'] == 3
        assert params['pruning_strategy'] == 'score-only'
        assert repr(finder).startswith("IncSliceLine(k=3")

    def test_set_params_resets_fit(self, scenario):
        X, errors = scenario
        finder = SliceLine(k=1, min_support=2)
        finder.fit(X, errors)
        finder.set_params(k=2, n_jobs=2)
        assert finder.params.k == 2
        assert finder.n_jobs == 2
        assert not finder.is_fitted

    def test_invalid_parameter(self):
        with pytest.raises(InvalidParameterError):
            SliceLine(alpha=2.0)

    def test_result_exports(self, scenario, tmp_path):
        X, errors = scenario
        result = SliceLine(k=2, min_support=2).find_and_get_result(X, errors)
        df = result.to_dataframe()
        assert df['slice'].tolist() == ["f0=1", "f1=1"]
        assert result.to_dict()['num_slices'] == 2
        result.save_json(str(tmp_path / "out.json"))
        result.save_csv(str(tmp_path / "out.csv"))
        assert (tmp_path / "out.json").exists()
        assert "Slices Found: 2" in result.summary()
