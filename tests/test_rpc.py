"""
Tests for the robust partial correlations (RPC) estimator.
"""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from hepidish.core.errors import (
    EstimationFailedError,
    IncompatibleReferenceError,
    InvalidConfigurationError,
)
from hepidish.methods import RPCConfig, RPCEstimator, estimate_rpc


class TestRPCEstimate:

    def test_rows_sum_to_one(self, simple_measurement, simple_reference):
        fractions = estimate_rpc(simple_measurement, simple_reference)
        assert fractions.shape == (5, 3)
        np.testing.assert_allclose(fractions.sum(axis=1), 1.0, atol=1e-10)
        assert (fractions.to_numpy() >= 0).all()

    def test_labels(self, simple_measurement, simple_reference):
        fractions = estimate_rpc(simple_measurement, simple_reference)
        assert list(fractions.index) == list(simple_measurement.columns)
        assert list(fractions.columns) == list(simple_reference.columns)

    def test_recovers_known_fractions(self, simple_measurement, simple_reference, dominant_fractions):
        fractions = estimate_rpc(simple_measurement, simple_reference)
        np.testing.assert_allclose(fractions.to_numpy(), dominant_fractions.to_numpy(), atol=0.05)

    def test_pure_sample_is_unit_vector(self, simple_reference):
        measurement = simple_reference[["Fib"]].rename(columns={"Fib": "pure"})
        fractions = estimate_rpc(measurement, simple_reference)
        assert fractions.loc["pure", "Fib"] > 0.99

    def test_single_cell_type(self, simple_measurement, simple_reference):
        fractions = estimate_rpc(simple_measurement, simple_reference[["Epi"]])
        np.testing.assert_allclose(fractions["Epi"], 1.0)

    def test_single_cell_type_anti_correlated_sample(self, simple_reference):
        measurement = pd.DataFrame({"anti": 1.0 - simple_reference["Epi"]})
        fractions = estimate_rpc(measurement, simple_reference[["Epi"]])
        assert fractions.loc["anti", "Epi"] == 1.0

    def test_feature_order_irrelevant(self, simple_measurement, simple_reference):
        shuffled = simple_measurement.sample(frac=1.0, random_state=1)
        pd.testing.assert_frame_equal(
            estimate_rpc(simple_measurement, simple_reference),
            estimate_rpc(shuffled, simple_reference),
        )

    def test_parallel_matches_sequential(self, simple_measurement, simple_reference):
        sequential = estimate_rpc(simple_measurement, simple_reference, n_jobs=1)
        parallel = estimate_rpc(simple_measurement, simple_reference, n_jobs=3)
        pd.testing.assert_frame_equal(sequential, parallel)


class TestRPCConfiguration:

    @pytest.mark.parametrize("max_iterations", [0, -1])
    def test_invalid_max_iterations(self, simple_measurement, simple_reference, max_iterations):
        with pytest.raises(InvalidConfigurationError):
            estimate_rpc(simple_measurement, simple_reference, max_iterations=max_iterations)

    def test_iteration_cap_still_returns_fractions(self, simple_measurement, simple_reference):
        result = RPCEstimator(RPCConfig(max_iterations=1)).estimate(
            simple_measurement, simple_reference
        )
        np.testing.assert_allclose(result.fractions.sum(axis=1), 1.0)
        assert not result.diagnostics["converged"].any()

    def test_diagnostics(self, simple_measurement, simple_reference):
        result = RPCEstimator().estimate(simple_measurement, simple_reference)
        assert set(result.diagnostics.columns) == {"n_iterations", "converged"}
        assert list(result.diagnostics.index) == list(simple_measurement.columns)
        assert result.n_features == 300


class TestRPCFailure:

    def test_no_positive_coefficient_raises(self, simple_reference):
        # A profile anti-correlated with every centroid has no positive weight
        anti = 1.0 - simple_reference.mean(axis=1)
        measurement = pd.DataFrame({"anti": anti})
        with pytest.raises(EstimationFailedError) as exc_info:
            estimate_rpc(measurement, simple_reference)
        assert exc_info.value.sample_index == 0
        assert exc_info.value.sample_id == "anti"

    @pytest.mark.parametrize("n_features", [3, 4])
    def test_too_few_shared_features(self, simple_measurement, simple_reference, n_features):
        with pytest.raises(IncompatibleReferenceError, match="shared features"):
            estimate_rpc(simple_measurement, simple_reference.iloc[:n_features])

    def test_solver_error_becomes_estimation_failure(self, simple_measurement, simple_reference):
        with patch("hepidish.methods.rpc.sm.RLM") as mock_rlm:
            mock_rlm.return_value.fit.side_effect = ZeroDivisionError("float division by zero")
            with pytest.raises(EstimationFailedError, match="failed") as exc_info:
                estimate_rpc(simple_measurement, simple_reference)
        assert exc_info.value.sample_id == "S1"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)
