"""
CIBERSORT-style (CBS) estimator: nu-support-vector regression.

For each sample a linear-kernel nu-SVR of the standardised profile on the
standardised reference centroids is fitted once per candidate ``nu``. The
primal weight vector of each fit is clamped at zero and renormalised; the
candidate whose fractions reconstruct the observed profile with the lowest
root-mean-square error wins (ties go to the earliest candidate).

A candidate is degenerate when the solver raises or its clamped weights are
all zero. A sample whose every candidate is degenerate raises
``EstimationFailedError``.

References:
    Newman AM, Liu CL, Green MR, et al. Robust enumeration of cell subsets
    from tissue expression profiles. Nat Methods (2015) 12: 453-457.
"""

from __future__ import annotations

import logging
from typing import Hashable, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler
from sklearn.svm import NuSVR

from hepidish.core.errors import EstimationFailedError
from hepidish.core.linalg import (
    clamp_nonnegative,
    is_valid_fraction,
    reconstruction_rmse,
    renormalize,
)
from hepidish.core.matrices import MatrixLike
from hepidish.methods._base import _BaseEstimator
from hepidish.methods.types import DEFAULT_NU_CANDIDATES, CBSConfig, MethodName, SampleFit

__all__ = ['CBSEstimator', 'estimate_cbs']

logger = logging.getLogger(__name__)


class CBSEstimator(_BaseEstimator):
    """
    Support-vector regression deconvolution with per-sample nu selection.

    Attributes:
        config: CBSConfig (nu_candidates, cost)
        n_jobs: Worker threads for per-sample fits (1 = sequential)

    Diagnostics per sample:
        nu: Selected nu value
        rmse: Reconstruction RMSE of the selected fit
        n_degenerate: Number of candidates that produced no usable fit
    """

    def __init__(self, config: CBSConfig | None = None, n_jobs: int = 1) -> None:
        super().__init__(n_jobs=n_jobs)
        self.config = config if config is not None else CBSConfig()

    @property
    def name(self) -> MethodName:
        return MethodName.CBS

    def _prepare(self, reference: np.ndarray) -> np.ndarray:
        return StandardScaler().fit_transform(reference)

    def _fit_candidate(self, scaled_reference: np.ndarray, scaled_sample: np.ndarray, nu: float):
        """Clamped, renormalised weights for one nu, or None if degenerate."""
        model = NuSVR(nu=nu, C=self.config.cost, kernel='linear')
        try:
            model.fit(scaled_reference, scaled_sample)
        except (ValueError, FloatingPointError) as e:
            logger.debug(f"NuSVR failed for nu={nu}: {e}")
            return None

        weights = clamp_nonnegative(np.ravel(model.coef_))
        if not is_valid_fraction(weights):
            return None
        return renormalize(weights)

    def _fit_sample(
        self,
        reference: np.ndarray,
        sample: np.ndarray,
        prepared: np.ndarray,
        sample_index: int,
        sample_id: Hashable,
    ) -> SampleFit:
        scaled_sample = StandardScaler().fit_transform(sample.reshape(-1, 1)).ravel()

        best_fractions = None
        best_rmse = np.inf
        best_nu = None
        n_degenerate = 0

        for nu in self.config.nu_candidates:
            fractions = self._fit_candidate(prepared, scaled_sample, nu)
            if fractions is None:
                n_degenerate += 1
                continue
            rmse = float(reconstruction_rmse(reference, fractions, sample))
            # Strict comparison keeps the earliest candidate on ties
            if rmse < best_rmse:
                best_fractions, best_rmse, best_nu = fractions, rmse, nu

        if best_fractions is None:
            raise EstimationFailedError(
                f"All {len(self.config.nu_candidates)} SVR candidates were degenerate for "
                f"sample {sample_id!r} (index {sample_index})",
                sample_index=sample_index,
                sample_id=sample_id,
            )

        logger.debug(f"CBS sample {sample_id}: nu={best_nu}, rmse={best_rmse:.4g}")

        return SampleFit(
            fractions=best_fractions,
            diagnostics={'nu': best_nu, 'rmse': best_rmse, 'n_degenerate': n_degenerate},
        )

    def __repr__(self) -> str:
        return (
            f"CBSEstimator(nu_candidates={list(self.config.nu_candidates)}, "
            f"n_jobs={self.n_jobs})"
        )


def estimate_cbs(
    measurement: MatrixLike,
    reference: MatrixLike,
    nu_candidates: Sequence[float] = DEFAULT_NU_CANDIDATES,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Estimate fractions with nu-support-vector regression.

    Args:
        measurement: Features × samples
        reference: Features × cell types
        nu_candidates: Candidate nu values (best per sample is kept)
        n_jobs: Worker threads for per-sample fits

    Returns:
        Samples × cell types fractions, each row summing to 1
    """
    estimator = CBSEstimator(CBSConfig(nu_candidates=tuple(nu_candidates)), n_jobs=n_jobs)
    return estimator.estimate(measurement, reference).fractions
