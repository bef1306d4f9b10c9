# Author: Emrullah Erce Dutkan
import numpy as np
import pytest
import scipy.sparse as sp

from online_pca.config import NormalizationConfig
from online_pca.normalize import (
    RowNormalizer,
    build_normalizer,
    mask_indices,
    preserves_zero,
    scale_matrix,
    scale_values,
)


class TestScaleValues:
    def test_log_uses_base_ten_with_pseudocount(self):
        np.testing.assert_allclose(scale_values([0.0, 9.0, 99.0], "log", 1.0), [0.0, 1.0, 2.0])

    def test_log_pseudocount(self):
        np.testing.assert_allclose(scale_values([8.0], "log", 2.0), [1.0])

    def test_sqrt(self):
        np.testing.assert_allclose(scale_values([0.0, 4.0, 9.0], "sqrt"), [0.0, 2.0, 3.0])

    def test_freeman_tukey(self):
        np.testing.assert_allclose(scale_values([0.0, 3.0], "ftt"), [1.0, np.sqrt(3.0) + 2.0])

    def test_raw_returns_copy(self):
        x = np.array([1.0, 2.0])
        y = scale_values(x, "raw")
        y[0] = 5.0
        assert x[0] == 1.0

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            scale_values([1.0], "cube")

    def test_preserves_zero(self):
        assert preserves_zero("raw")
        assert preserves_zero("sqrt")
        assert preserves_zero("log", 1.0)
        assert not preserves_zero("log", 0.5)
        assert not preserves_zero("ftt")

    def test_scale_matrix_keeps_sparse(self):
        X = sp.csr_matrix(np.array([[0.0, 4.0], [9.0, 0.0]]))
        Y = scale_matrix(X, "sqrt")
        assert sp.issparse(Y)
        np.testing.assert_allclose(Y.toarray(), [[0.0, 2.0], [3.0, 0.0]])

    def test_scale_matrix_densifies_when_zero_moves(self):
        X = sp.csr_matrix(np.array([[0.0, 3.0]]))
        Y = scale_matrix(X, "ftt")
        assert not sp.issparse(Y)
        np.testing.assert_allclose(Y, [[1.0, np.sqrt(3.0) + 2.0]])


class TestMaskIndices:
    def test_boolean_mask(self):
        np.testing.assert_array_equal(mask_indices([True, False, True], 3), [0, 2])

    def test_float_flags_are_boolean(self):
        np.testing.assert_array_equal(mask_indices(np.array([1.0, 0.0, 1.0]), 3), [0, 2])

    def test_indices_sorted_and_unique(self):
        np.testing.assert_array_equal(mask_indices([4, 2, 4], 5), [2, 4])

    @pytest.mark.parametrize(
        "mask, n_columns, expected",
        [
            ([0, 1], 2, [0, 1]),
            ([0, 1, 1], 3, [0, 1]),
            (np.array([1, 0, 1]), 3, [0, 1]),
        ],
    )
    def test_integers_are_indices_even_when_they_look_like_flags(self, mask, n_columns, expected):
        np.testing.assert_array_equal(mask_indices(mask, n_columns), expected)
        assert RowNormalizer(n_columns, mask=mask).n_features == len(expected)

    def test_float_mask_must_hold_flags(self):
        with pytest.raises(ValueError):
            mask_indices(np.array([0.0, 2.0, 1.0]), 3)

    def test_float_flags_wrong_length(self):
        with pytest.raises(ValueError):
            mask_indices(np.array([1.0, 0.0]), 3)

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            mask_indices([0, 7], 5)

    def test_boolean_wrong_length(self):
        with pytest.raises(ValueError):
            mask_indices([True, False], 3)


class TestRowNormalizer:
    def test_raw_is_idempotent(self):
        normalizer = RowNormalizer(5)
        x = np.array([1.0, 0.0, 3.0, 4.0, 5.0])
        once = normalizer(x)
        twice = normalizer(once)
        np.testing.assert_array_equal(once, x)
        np.testing.assert_array_equal(twice, once)

    def test_pipeline_order(self):
        normalizer = RowNormalizer(
            2,
            rowmean=np.array([0.0, 2.0]),
            rowvar=np.array([1.0, 4.0]),
            colsum=np.array([1.0, 2.0]),
        )
        # (x - 2) / sqrt(4) / colsum
        np.testing.assert_allclose(normalizer(np.array([1.0, 3.0]), n=1), [-0.5, 0.25])

    def test_scale_before_centering(self):
        normalizer = RowNormalizer(2, scale="log", rowmean=np.array([1.0]))
        np.testing.assert_allclose(normalizer(np.array([9.0, 99.0]), n=0), [0.0, 1.0])

    def test_mask_selects_columns_and_colsum(self):
        normalizer = RowNormalizer(
            4, mask=[True, False, True, False], colsum=np.array([2.0, 100.0, 4.0, 100.0])
        )
        assert normalizer.n_features == 2
        np.testing.assert_allclose(normalizer(np.array([2.0, 7.0, 8.0, 7.0])), [1.0, 2.0])

    def test_zero_divisors_are_guarded(self):
        normalizer = RowNormalizer(
            2, rowmean=np.array([1.0]), rowvar=np.array([0.0]), colsum=np.array([0.0, 1.0])
        )
        assert np.all(np.isfinite(normalizer(np.array([1.0, 3.0]), n=0)))

    def test_does_not_modify_input(self):
        normalizer = RowNormalizer(2, rowmean=np.array([1.0]))
        x = np.array([3.0, 4.0])
        normalizer(x)
        np.testing.assert_array_equal(x, [3.0, 4.0])

    def test_wrong_row_length(self):
        with pytest.raises(ValueError):
            RowNormalizer(3)(np.ones(4))

    def test_colsum_length_checked(self):
        with pytest.raises(ValueError):
            RowNormalizer(3, colsum=np.ones(2))

    def test_rowmean_vector(self):
        np.testing.assert_array_equal(RowNormalizer(2).rowmean_vector(3), np.zeros(3))
        normalizer = RowNormalizer(2, rowmean=np.array([1.0, 2.0, 3.0]))
        np.testing.assert_array_equal(normalizer.rowmean_vector(2), [1.0, 2.0])


def test_build_normalizer_loads_csv(tmp_path):
    rowmean_path = tmp_path / "rowmean.csv"
    mask_path = tmp_path / "mask.csv"
    np.savetxt(rowmean_path, [1.0, 2.0])
    np.savetxt(mask_path, [1, 0, 1])

    config = NormalizationConfig(rowmean=str(rowmean_path), mask=str(mask_path))
    normalizer = build_normalizer(config, 3)

    assert normalizer.n_features == 2
    np.testing.assert_allclose(normalizer(np.array([3.0, 9.0, 5.0]), n=1), [1.0, 3.0])
