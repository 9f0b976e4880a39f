"""
Tests for the CIBERSORT-style (CBS) nu-SVR estimator.

Solver failures are simulated by patching NuSVR rather than relying on
data that happens to break libsvm.
"""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from hepidish.core.errors import EstimationFailedError, InvalidConfigurationError
from hepidish.methods import CBSConfig, CBSEstimator, estimate_cbs


class TestCBSEstimate:

    def test_rows_sum_to_one(self, simple_measurement, simple_reference):
        fractions = estimate_cbs(simple_measurement, simple_reference)
        assert fractions.shape == (5, 3)
        np.testing.assert_allclose(fractions.sum(axis=1), 1.0, atol=1e-10)
        assert (fractions.to_numpy() >= 0).all()

    def test_dominant_cell_type_identified(self, simple_measurement, simple_reference, dominant_fractions):
        fractions = estimate_cbs(simple_measurement, simple_reference)
        expected = dominant_fractions.idxmax(axis=1)
        pd.testing.assert_series_equal(fractions.idxmax(axis=1), expected, check_names=False)

    @pytest.mark.parametrize("cell_type", ["Epi", "Fib", "IC"])
    def test_pure_sample(self, simple_reference, cell_type):
        measurement = simple_reference[[cell_type]].rename(columns={cell_type: "pure"})
        fractions = estimate_cbs(measurement, simple_reference)
        assert fractions.loc["pure"].idxmax() == cell_type
        assert fractions.loc["pure", cell_type] > 0.8

    def test_parallel_matches_sequential(self, simple_measurement, simple_reference):
        pd.testing.assert_frame_equal(
            estimate_cbs(simple_measurement, simple_reference, n_jobs=1),
            estimate_cbs(simple_measurement, simple_reference, n_jobs=2),
        )


class TestCBSCandidateSelection:

    def test_diagnostics_record_selected_nu(self, simple_measurement, simple_reference):
        result = CBSEstimator().estimate(simple_measurement, simple_reference)
        assert set(result.diagnostics.columns) == {"nu", "rmse", "n_degenerate"}
        assert result.diagnostics["nu"].isin([0.25, 0.5, 0.75]).all()
        assert (result.diagnostics["n_degenerate"] == 0).all()

    def test_selected_rmse_matches_reconstruction(self, simple_measurement, simple_reference):
        result = CBSEstimator().estimate(simple_measurement, simple_reference)
        np.testing.assert_allclose(
            result.diagnostics["rmse"].to_numpy(),
            result.reconstruction_rmse().to_numpy(),
        )

    def test_single_candidate(self, simple_measurement, simple_reference):
        result = CBSEstimator(CBSConfig(nu_candidates=(0.5,))).estimate(
            simple_measurement, simple_reference
        )
        assert (result.diagnostics["nu"] == 0.5).all()

    def test_ties_keep_first_candidate(self, simple_measurement, simple_reference):
        estimator = CBSEstimator(CBSConfig(nu_candidates=(0.75, 0.25)))
        fixed = np.array([0.5, 0.3, 0.2])
        with patch.object(CBSEstimator, "_fit_candidate", return_value=fixed):
            result = estimator.estimate(simple_measurement, simple_reference)
        assert (result.diagnostics["nu"] == 0.75).all()

    def test_degenerate_candidates_skipped(self, simple_measurement, simple_reference):
        fixed = np.array([0.5, 0.3, 0.2])
        with patch.object(CBSEstimator, "_fit_candidate", side_effect=[None, fixed] * 5):
            result = CBSEstimator(CBSConfig(nu_candidates=(0.25, 0.5))).estimate(
                simple_measurement, simple_reference
            )
        assert (result.diagnostics["nu"] == 0.5).all()
        assert (result.diagnostics["n_degenerate"] == 1).all()


class TestCBSFailure:

    def test_all_candidates_degenerate(self, simple_measurement, simple_reference):
        with patch("hepidish.methods.cbs.NuSVR") as mock_svr:
            mock_svr.return_value.fit.side_effect = ValueError("solver failed")
            with pytest.raises(EstimationFailedError, match="All 3 SVR candidates") as exc_info:
                estimate_cbs(simple_measurement, simple_reference)
        assert exc_info.value.sample_index == 0
        assert exc_info.value.sample_id == "S1"

    def test_zero_weights_are_degenerate(self, simple_measurement, simple_reference):
        with patch("hepidish.methods.cbs.NuSVR") as mock_svr:
            mock_svr.return_value.coef_ = np.array([[-0.2, -0.1, 0.0]])
            with pytest.raises(EstimationFailedError):
                estimate_cbs(simple_measurement, simple_reference)

    @pytest.mark.parametrize("nu", [[0.0], [1.2], []])
    def test_invalid_nu(self, simple_measurement, simple_reference, nu):
        with pytest.raises(InvalidConfigurationError):
            estimate_cbs(simple_measurement, simple_reference, nu_candidates=nu)
