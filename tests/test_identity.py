"""Tests for canonical slice ids and the id mapping table."""
import itertools

import numpy as np
import pytest

from incslice import IdMapping, InvalidDataError, OffsetEncoder, SliceIdentity


class TestSliceIdentity:
    def test_mixed_radix_ids(self):
        ident = SliceIdentity([2, 2])
        ids = ident.ids_from_categories(np.array([[1, 0], [0, 1], [2, 2], [0, 0]]))
        assert ids.tolist() == [1, 3, 8, 0]

    def test_bijection_over_the_whole_space(self):
        ident = SliceIdentity([2, 1, 3])
        vectors = np.array(list(itertools.product(range(3), range(2), range(4))))
        ids = ident.ids_from_categories(vectors)
        assert sorted(ids.tolist()) == list(range(ident.space))
        np.testing.assert_array_equal(ident.categories_from_ids(ids), vectors)

    def test_order_does_not_depend_on_domains(self):
        vectors = np.array([[1, 0, 0], [0, 1, 0], [1, 1, 0], [0, 0, 2], [2, 0, 1]])
        small = SliceIdentity([2, 1, 2]).ids_from_categories(vectors)
        large = SliceIdentity([7, 4, 9]).ids_from_categories(vectors)
        assert np.argsort(small).tolist() == np.argsort(large).tolist()

    def test_onehot_ids_match_category_ids(self):
        X = np.array([[1, 2], [2, 1]])
        enc = OffsetEncoder.fit(X)
        ident = SliceIdentity.for_encoder(enc)
        np.testing.assert_array_equal(ident.ids_from_onehot(enc.encode(X), enc), ident.ids_from_categories(X))

    def test_wide_lattices_use_python_ints(self):
        ident = SliceIdentity([1000] * 8)
        assert ident.dtype == object
        top = np.full((1, 8), 1000)
        ids = ident.ids_from_categories(top)
        assert ids[0] == 1001 ** 8 - 1
        assert ident.categories_from_ids(ids).tolist() == top.tolist()

    def test_narrow_lattices_use_int64(self):
        assert SliceIdentity([3, 3]).dtype == np.int64


class TestIdMapping:
    def test_encode_decode_symmetry(self):
        mapping = IdMapping.build(np.array([40, 3, 17, 3]))
        assert mapping.keys.tolist() == [3, 17, 40]
        codes = mapping.encode(np.array([17, 40, 3]))
        assert codes.tolist() == [1, 2, 0]
        assert mapping.decode(codes).tolist() == [17, 40, 3]

    def test_lookup_reports_missing_ids(self):
        mapping = IdMapping.build(np.array([2, 5, 9]))
        found, codes = mapping.lookup(np.array([5, 6, 100, 0]))
        assert found.tolist() == [True, False, False, False]
        assert codes[0] == 1

    def test_encode_missing_id_raises(self):
        mapping = IdMapping.build(np.array([2, 5]))
        with pytest.raises(InvalidDataError):
            mapping.encode(np.array([3]))

    def test_decode_out_of_range_raises(self):
        with pytest.raises(InvalidDataError):
            IdMapping.build(np.array([2, 5])).decode(np.array([2]))

    def test_unsorted_keys_rejected(self):
        with pytest.raises(InvalidDataError):
            IdMapping(np.array([5, 2]))

    def test_empty_mapping(self):
        mapping = IdMapping.build(np.array([], dtype=np.int64))
        found, _ = mapping.lookup(np.array([1, 2]))
        assert not found.any()
        assert len(mapping) == 0

    def test_object_ids(self):
        big = 2 ** 70
        mapping = IdMapping.build(np.array([big + 5, 1, big], dtype=object))
        found, codes = mapping.lookup(np.array([big, 7], dtype=object))
        assert found.tolist() == [True, False]
        assert mapping.decode(codes[:1])[0] == big
