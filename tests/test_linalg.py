"""
Tests for the shared numeric primitives in hepidish.core.linalg.
"""

import numpy as np
import pytest

from hepidish.core.linalg import (
    clamp_nonnegative,
    crossprod,
    is_valid_fraction,
    reconstruction_rmse,
    renormalize,
)


class TestCrossprod:

    def test_self_crossprod(self):
        a = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        np.testing.assert_allclose(crossprod(a), a.T @ a)

    def test_vector_operand(self):
        a = np.array([[1.0, 0.0], [0.0, 2.0], [1.0, 1.0]])
        y = np.array([1.0, 2.0, 3.0])
        result = crossprod(a, y)
        assert result.shape == (2,)
        np.testing.assert_allclose(result, [4.0, 7.0])


class TestClampAndRenormalize:

    def test_clamp_zeroes_negatives_only(self):
        values = np.array([-0.5, 0.0, 0.3])
        np.testing.assert_array_equal(clamp_nonnegative(values), [0.0, 0.0, 0.3])

    def test_clamp_returns_copy(self):
        values = np.array([-1.0, 2.0])
        clamp_nonnegative(values)
        assert values[0] == -1.0

    def test_renormalize_vector(self):
        np.testing.assert_allclose(renormalize(np.array([1.0, 3.0])), [0.25, 0.75])

    def test_renormalize_rows(self):
        values = np.array([[1.0, 1.0], [0.0, 2.0]])
        np.testing.assert_allclose(renormalize(values, axis=1).sum(axis=1), [1.0, 1.0])

    def test_zero_total_gives_nan(self):
        result = renormalize(np.zeros(3))
        assert np.all(np.isnan(result))


class TestValidity:

    @pytest.mark.parametrize("values, expected", [
        ([0.0, 0.2, 0.0], True),
        ([0.0, 0.0, 0.0], False),
        ([np.nan, 1.0, 0.0], False),
        ([np.inf, 0.0, 0.0], False),
    ])
    def test_is_valid_fraction(self, values, expected):
        assert is_valid_fraction(np.array(values)) is expected


class TestReconstructionRMSE:

    def test_perfect_reconstruction(self):
        ref = np.array([[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]])
        fractions = np.array([0.3, 0.7])
        observed = ref @ fractions
        assert float(reconstruction_rmse(ref, fractions, observed)) == pytest.approx(0.0)

    def test_per_sample_values(self):
        ref = np.eye(2)
        fractions = np.array([[1.0, 0.0], [0.0, 1.0]])
        observed = np.array([[1.0, 0.0], [1.0, 1.0]])
        rmse = reconstruction_rmse(ref, fractions, observed)
        assert rmse.shape == (2,)
        np.testing.assert_allclose(rmse, [np.sqrt(0.5), 0.0])
