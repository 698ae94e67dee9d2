"""Tests for run parameters, lattice storage, run state and persistence."""
import numpy as np
import pytest

from incslice import (
    IncompletePriorStateError,
    InvalidDataError,
    InvalidParameterError,
    LatticeLevel,
    LatticeStore,
    OffsetEncoder,
    PruningStrategy,
    RunParams,
    RunState,
    SliceIdentity,
    SliceStats,
    load_state,
    save_state,
)


class TestRunParams:
    def test_defaults(self):
        params = RunParams()
        assert params.k == 4
        assert params.pruning_strategy == PruningStrategy.EXACT_ONLY
        assert params.eval_mode.value == 'blocked'

    @pytest.mark.parametrize("kwargs", [
        dict(k=-1),
        dict(min_support=0),
        dict(alpha=1.5),
        dict(block_size=0),
        dict(max_level=-2),
        dict(eval_mode='fast'),
        dict(pruning_strategy='greedy'),
        dict(k=2.5),
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(InvalidParameterError):
            RunParams(**kwargs)

    def test_matches_ignores_verbose(self):
        assert RunParams(verbose=True).matches(RunParams())
        assert not RunParams(k=3).matches(RunParams())
        assert RunParams(k=3, alpha=0.9).differences(RunParams()) == ['k', 'alpha']

    def test_dict_round_trip(self):
        params = RunParams(k=7, pruning_strategy='score-only', compact_encoding=True)
        assert RunParams.from_dict(params.to_dict()) == params

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidParameterError):
            RunParams.from_dict({'k': 3, 'beam': 2})

    @pytest.mark.parametrize("strategy,rules", [
        ('all', {'maxscore', 'score', 'size', 'approximate'}),
        ('exact-only', {'maxscore', 'score', 'size'}),
        ('score-only', {'score'}),
        ('maxscore-only', {'maxscore'}),
        ('size-only', {'size'}),
        ('none', set()),
    ])
    def test_strategy_rules(self, strategy, rules):
        assert PruningStrategy(strategy).rules == rules
        assert PruningStrategy(strategy).is_exact == ('approximate' not in rules)


@pytest.fixture
def level_entry():
    enc = OffsetEncoder.fit(np.array([[2, 3]]))
    categories = np.array([[1, 1], [2, 3], [0, 2]])
    ids = SliceIdentity.for_encoder(enc).ids_from_categories(categories)
    order = np.argsort(ids)
    slices = enc.encode(categories[order])
    stats = SliceStats([0.1, 0.2, 0.3], [3.0, 2.0, 1.0], [1.0, 1.0, 1.0], [5.0, 4.0, 3.0])
    return enc, slices, stats, ids[order]


class TestLatticeLevel:
    def test_onehot_level(self, level_entry):
        enc, slices, stats, ids = level_entry
        entry = LatticeLevel.build(2, slices, stats, ids, compact=False)
        assert not entry.compact
        assert len(entry) == 3
        assert entry.ids(enc).tolist() == ids.tolist()

    def test_compact_level_decodes_to_same_rows(self, level_entry):
        enc, slices, stats, ids = level_entry
        entry = LatticeLevel.build(2, slices, stats, ids, compact=True)
        assert entry.compact
        assert entry.slices is None
        assert entry.codes.tolist() == [0, 1, 2]
        assert (entry.onehot(enc) != slices).nnz == 0

    def test_row_count_mismatch_rejected(self, level_entry):
        enc, slices, stats, ids = level_entry
        with pytest.raises(InvalidDataError):
            LatticeLevel(2, stats.take(np.array([0])), slices=slices)


class TestLatticeStore:
    def test_put_get_levels(self, level_entry):
        enc, slices, stats, ids = level_entry
        store = LatticeStore()
        store.put(LatticeLevel.build(2, slices, stats, ids, compact=True))
        store.put(LatticeLevel.build(1, slices[:1], stats.take(np.array([0])), ids[:1], compact=False))
        assert store.levels == [1, 2]
        assert 2 in store and 3 not in store
        assert store.total_slices() == 4
        assert store.get(3) is None
        assert store.ids(2, enc).tolist() == ids.tolist()
        assert store.to_onehot(2, enc).shape == slices.shape

    def test_same_as_across_encodings(self, level_entry):
        enc, slices, stats, ids = level_entry
        plain = LatticeStore({2: LatticeLevel.build(2, slices, stats, ids, compact=False)})
        compact = LatticeStore({2: LatticeLevel.build(2, slices, stats, ids, compact=True)})
        assert plain.same_as(compact, enc)

        wider = OffsetEncoder(np.array([0, 4]), np.array([4, 7]))
        moved = LatticeStore({2: LatticeLevel.build(2, wider.reencode(slices, enc), stats, ids, compact=False)})
        assert plain.same_as(moved, enc, wider)

        other = LatticeStore({2: LatticeLevel.build(2, slices, stats.with_scores(np.zeros(3)), ids, False)})
        assert not plain.same_as(other, enc)


class TestRunState:
    def test_from_parts_all_none(self):
        assert RunState.from_parts() is None

    def test_from_parts_partial_raises(self):
        with pytest.raises(IncompletePriorStateError, match="lattice"):
            RunState.from_parts(X=np.zeros((2, 1)), errors=np.zeros(2), foffb=[0], foffe=[1],
                                top_k=None, params=RunParams())

    def test_partial_state_is_a_parameter_error(self):
        with pytest.raises(InvalidParameterError):
            RunState.from_parts(X=np.zeros((2, 1)))


class TestPersistence:
    @pytest.mark.parametrize("compact", [False, True])
    def test_round_trip(self, tmp_path, make_data, run, compact):
        X, errors = make_data(5)
        result = run(X, errors, compact_encoding=compact)
        path = save_state(result.state, tmp_path / "state.npz")
        loaded = load_state(path)

        np.testing.assert_array_equal(loaded.X, result.state.X)
        np.testing.assert_array_equal(loaded.errors, result.state.errors)
        assert loaded.params == result.state.params
        assert loaded.encoder == result.state.encoder
        np.testing.assert_array_equal(loaded.top_k.ids, result.state.top_k.ids)
        assert loaded.lattice.same_as(result.state.lattice, loaded.encoder)

    def test_incremental_run_from_loaded_state(self, tmp_path, make_data, run, assert_same_top_k):
        X, errors = make_data(6)
        first = run(X[:180], errors[:180])
        loaded = load_state(save_state(first.state, tmp_path / "state.npz"))

        from_loaded = run(X[180:], errors[180:], prior=loaded)
        from_memory = run(X[180:], errors[180:], prior=first.state)
        assert_same_top_k(from_loaded, from_memory)

    def test_not_a_state_file(self, tmp_path):
        path = tmp_path / "bogus.npz"
        np.savez(path, foo=np.arange(3))
        with pytest.raises(InvalidDataError):
            load_state(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidDataError):
            load_state(tmp_path / "missing.npz")
