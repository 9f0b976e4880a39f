"""
Constrained Projection (CP) estimator.

Per sample, solves the quadratic program

    minimise    ½ fᵀ D f − dᵀ f          (D = 2·RᵀR, d = 2·Rᵀy)
    subject to  f >= 0
                Σf <= 1   (inequality)   or   Σf = 1   (equality)

which is ‖R·f − y‖² up to a constant. ``D`` depends only on the reference
and is computed once; each sample is an independent solve.

The problem is always feasible (the uniform vector satisfies both
constraint sets), but solver-reported infeasibility is still checked and
raised as ``InfeasibleConstraintError``.

References:
    Houseman EA, Accomando WP, Koestler DC, et al. DNA methylation arrays as
    surrogate measures of cell mixture distribution. BMC Bioinformatics
    (2012) 13: 86.
"""

from __future__ import annotations

import logging
from typing import Hashable

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from hepidish.core.errors import EstimationFailedError, InfeasibleConstraintError
from hepidish.core.linalg import clamp_nonnegative, crossprod, renormalize
from hepidish.core.matrices import MatrixLike
from hepidish.methods._base import _BaseEstimator
from hepidish.methods.types import ConstraintMode, CPConfig, MethodName, SampleFit

__all__ = ['CPEstimator', 'estimate_cp']

logger = logging.getLogger(__name__)

# SLSQP exit modes
_SLSQP_INCOMPATIBLE_CONSTRAINTS = 4
_SLSQP_LINESEARCH_STALLED = 8


class CPEstimator(_BaseEstimator):
    """
    Quadratic-programming projection onto the (sub-)simplex.

    Attributes:
        config: CPConfig (constraint_mode, max_iterations, tolerance)
        n_jobs: Worker threads for per-sample solves (1 = sequential)

    Diagnostics per sample:
        n_iterations: SLSQP iterations
        objective: ‖R·f − y‖² / n_features at the solution

    Example:
        >>> estimator = CPEstimator(CPConfig(constraint_mode="equality"))
        >>> fractions = estimator.estimate(beta, ref).fractions
    """

    def __init__(self, config: CPConfig | None = None, n_jobs: int = 1) -> None:
        super().__init__(n_jobs=n_jobs)
        self.config = config if config is not None else CPConfig()

    @property
    def name(self) -> MethodName:
        return MethodName.CP

    @property
    def constraint_mode(self) -> ConstraintMode:
        return self.config.constraint_mode

    def _prepare(self, reference: np.ndarray) -> np.ndarray:
        # Scaled by the feature count so tolerances do not depend on array size
        return 2.0 * crossprod(reference) / reference.shape[0]

    def _constraints(self, n_cell_types: int) -> dict:
        ones = np.ones(n_cell_types)
        if self.constraint_mode is ConstraintMode.EQUALITY:
            return {'type': 'eq', 'fun': lambda f: f.sum() - 1.0, 'jac': lambda f: ones}
        return {'type': 'ineq', 'fun': lambda f: 1.0 - f.sum(), 'jac': lambda f: -ones}

    def _fit_sample(
        self,
        reference: np.ndarray,
        sample: np.ndarray,
        prepared: np.ndarray,
        sample_index: int,
        sample_id: Hashable,
    ) -> SampleFit:
        n_features, n_cell_types = reference.shape
        quad = prepared
        linear = 2.0 * crossprod(reference, sample) / n_features

        result = minimize(
            lambda f: 0.5 * f @ quad @ f - linear @ f,
            x0=np.full(n_cell_types, 1.0 / n_cell_types),
            jac=lambda f: quad @ f - linear,
            method='SLSQP',
            bounds=[(0.0, None)] * n_cell_types,
            constraints=[self._constraints(n_cell_types)],
            options={'ftol': self.config.tolerance, 'maxiter': self.config.max_iterations},
        )

        solution = np.asarray(result.x, dtype=float)
        violation = self._constraint_violation(solution)
        feasibility_tol = max(1e-6, 100 * self.config.tolerance)

        if result.status == _SLSQP_INCOMPATIBLE_CONSTRAINTS or violation > feasibility_tol:
            raise InfeasibleConstraintError(
                f"Quadratic program infeasible for sample {sample_id!r} (index {sample_index}): "
                f"{result.message} (constraint violation {violation:.3g})",
                sample_index=sample_index,
                sample_id=sample_id,
            )
        if not (result.success or result.status == _SLSQP_LINESEARCH_STALLED):
            raise EstimationFailedError(
                f"Quadratic program failed for sample {sample_id!r} (index {sample_index}): "
                f"{result.message}",
                sample_index=sample_index,
                sample_id=sample_id,
            )
        if result.status == _SLSQP_LINESEARCH_STALLED:
            logger.debug(f"CP sample {sample_id}: stopped at precision limit ({result.message})")

        fractions = clamp_nonnegative(solution)
        if self.constraint_mode is ConstraintMode.EQUALITY:
            fractions = renormalize(fractions)
        else:
            total = fractions.sum()
            if total > 1.0:
                fractions = fractions / total

        residuals = sample - reference @ fractions
        return SampleFit(
            fractions=fractions,
            diagnostics={
                'n_iterations': int(result.nit),
                'objective': float(residuals @ residuals / n_features),
            },
        )

    def _constraint_violation(self, solution: np.ndarray) -> float:
        if not np.all(np.isfinite(solution)):
            return np.inf
        negativity = float(max(0.0, -solution.min()))
        total = float(solution.sum())
        if self.constraint_mode is ConstraintMode.EQUALITY:
            return max(negativity, abs(total - 1.0))
        return max(negativity, total - 1.0)

    def __repr__(self) -> str:
        return (
            f"CPEstimator(constraint_mode={self.constraint_mode.value!r}, "
            f"n_jobs={self.n_jobs})"
        )


def estimate_cp(
    measurement: MatrixLike,
    reference: MatrixLike,
    constraint_mode: ConstraintMode | str = ConstraintMode.INEQUALITY,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Estimate fractions by constrained projection.

    Args:
        measurement: Features × samples
        reference: Features × cell types
        constraint_mode: "inequality" (rows sum to <= 1) or "equality" (== 1)
        n_jobs: Worker threads for per-sample solves

    Returns:
        Samples × cell types fractions

    Raises:
        InvalidConfigurationError: Unrecognised constraint_mode (before any solve)
    """
    estimator = CPEstimator(CPConfig(constraint_mode=constraint_mode), n_jobs=n_jobs)
    return estimator.estimate(measurement, reference).fractions
