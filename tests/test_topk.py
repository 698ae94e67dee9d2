"""Tests for top-k maintenance."""
import numpy as np

from incslice import OffsetEncoder, SliceIdentity, SliceStats, TopK
from incslice.algorithms.topk import maintain_top_k


def _slices(enc, categories):
    categories = np.array(categories)
    return enc.encode(categories), SliceIdentity.for_encoder(enc).ids_from_categories(categories)


class TestMaintainTopK:
    def setup_method(self):
        self.enc = OffsetEncoder.fit(np.array([[3, 3]]))
        self.empty = TopK.empty(self.enc.n_columns)

    def test_sorted_by_score_then_id(self):
        S, ids = _slices(self.enc, [[0, 1], [1, 0], [2, 0], [0, 3]])
        stats = SliceStats([0.5, 0.5, 0.9, 0.1], [4.0] * 4, [1.0] * 4, [10.0] * 4)
        top = maintain_top_k(self.empty, S, stats, ids, 3, 5)
        assert self.enc.decode(top.slices).tolist() == [[2, 0], [1, 0], [0, 1]]
        assert top.stats.score.tolist() == [0.9, 0.5, 0.5]
        assert top.ids.tolist() == [2, 1, 4]

    def test_ineligible_slices_filtered(self):
        S, ids = _slices(self.enc, [[1, 0], [2, 0], [3, 0]])
        stats = SliceStats([3.0, 2.0, 1.0], [0.0, 4.0, 4.0], [0.0, 1.0, 1.0], [10.0, 4.0, 10.0])
        top = maintain_top_k(self.empty, S, stats, ids, 5, 5)
        # zero error and size below support are never eligible
        assert self.enc.decode(top.slices).tolist() == [[3, 0]]

    def test_negative_scores_are_eligible(self):
        S, ids = _slices(self.enc, [[1, 0]])
        stats = SliceStats([-0.4], [2.0], [1.0], [6.0])
        top = maintain_top_k(self.empty, S, stats, ids, 1, 2)
        assert len(top) == 1

    def test_duplicates_removed_across_merges(self):
        S, ids = _slices(self.enc, [[1, 0], [0, 2]])
        stats = SliceStats([0.7, 0.3], [4.0, 4.0], [1.0, 1.0], [10.0, 10.0])
        top = maintain_top_k(self.empty, S, stats, ids, 4, 5)
        top = maintain_top_k(top, S, stats, ids, 4, 5)
        assert len(top) == 2
        assert top.ids.tolist() == ids.tolist()

    def test_truncates_to_k_and_zero_k_is_empty(self):
        S, ids = _slices(self.enc, [[1, 0], [2, 0], [3, 0]])
        stats = SliceStats([0.1, 0.2, 0.3], [4.0] * 3, [1.0] * 3, [10.0] * 3)
        assert len(maintain_top_k(self.empty, S, stats, ids, 2, 5)) == 2
        assert len(maintain_top_k(self.empty, S, stats, ids, 0, 5)) == 0

    def test_object_ids(self):
        enc = OffsetEncoder.fit(np.full((1, 8), 1000))
        ident = SliceIdentity.for_encoder(enc)
        categories = np.zeros((2, 8), dtype=np.int64)
        categories[0, 7] = 1000
        categories[1, 0] = 1
        S = enc.encode(categories)
        ids = ident.ids_from_categories(categories)
        stats = SliceStats([0.5, 0.5], [4.0, 4.0], [1.0, 1.0], [10.0, 10.0])
        top = maintain_top_k(TopK.empty(enc.n_columns, ident.dtype), S, stats, ids, 2, 5)
        assert enc.decode(top.slices)[0, 0] == 1


class TestCutoff:
    def test_cutoff(self):
        enc = OffsetEncoder.fit(np.array([[3, 3]]))
        S, ids = _slices(enc, [[1, 0], [2, 0]])
        stats = SliceStats([0.4, 0.2], [4.0] * 2, [1.0] * 2, [10.0] * 2)
        top = maintain_top_k(TopK.empty(enc.n_columns), S, stats, ids, 5, 5)
        assert top.cutoff(2) == 0.2
        assert top.cutoff(3) == -np.inf
        assert top.cutoff(0) == np.inf
        assert top.score_range() == (0.4, 0.2)
