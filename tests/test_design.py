"""Tests for tumor/normal design matrices."""

import numpy as np
import pytest

import tumorde as td


class TestDesignMatrix:

    def test_paired_layout(self):
        d = td.design_matrix(['A.t', 'B.t', 'A.n', 'B.n'], ['A', 'B'], ['A', 'B'])
        assert list(d.columns) == ['Intercept', 'patients[T.B]', 'tissue[T.Tumor]']
        assert list(d.index) == ['A.t', 'B.t', 'A.n', 'B.n']
        np.testing.assert_array_equal(d.values, [
            [1, 0, 1],
            [1, 1, 1],
            [1, 0, 0],
            [1, 1, 0],
        ])

    def test_tissue_is_last_column(self):
        d = td.design_matrix(['A.t', 'B.t', 'C.t', 'A.n', 'B.n', 'C.n'],
                             ['A', 'B', 'C'], ['A', 'B', 'C'])
        assert d.columns[-1] == 'tissue[T.Tumor]'
        np.testing.assert_array_equal(d['tissue[T.Tumor]'].values, [1, 1, 1, 0, 0, 0])

    def test_only_paired_drops_unmatched_tumors(self):
        d = td.design_matrix(['A.t', 'B.t', 'A.n', 'B.n'],
                             ['A', 'X', 'B'], ['A', 'B'])
        assert d.shape == (4, 3)
        assert 'patients[T.X]' not in d.columns

    def test_unpaired_keeps_all_tumors(self):
        d = td.design_matrix(['A.t', 'X.t', 'A.n', 'B.n'],
                             ['A', 'X'], ['A', 'B'], only_paired=False)
        assert d.shape == (4, 4)
        assert 'patients[T.X]' in d.columns

    def test_wrong_number_of_names(self):
        with pytest.raises(ValueError):
            td.design_matrix(['A.t', 'A.n'], ['A', 'B'], ['A', 'B'])

    def test_float_dtype(self):
        d = td.design_matrix(['A.t', 'B.t', 'A.n', 'B.n'], ['A', 'B'], ['A', 'B'])
        assert all(dt == np.float64 for dt in d.dtypes)

    def test_numeric_patient_ids_are_levels(self):
        d = td.design_matrix(['1t', '2t', '3t', '1n', '2n', '3n'], [1, 2, 3], [1, 2, 3])
        assert list(d.columns) == ['Intercept', 'patients[T.2]', 'patients[T.3]',
                                   'tissue[T.Tumor]']
        np.testing.assert_array_equal(d['patients[T.3]'].values, [0, 0, 1, 0, 0, 1])
        np.testing.assert_array_equal(d['tissue[T.Tumor]'].values, [1, 1, 1, 0, 0, 0])
