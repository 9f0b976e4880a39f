"""
Core types for the deconvolution estimators.

Defines the method tags, per-method configuration records, the result
container and the ``Estimator`` protocol that the hierarchical composer is
written against.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

import numpy as np
import pandas as pd

from hepidish.core.errors import InvalidConfigurationError
from hepidish.core.linalg import reconstruction_rmse
from hepidish.core.matrices import MatrixLike

__all__ = [
    'MethodName',
    'ConstraintMode',
    'RPCConfig',
    'CBSConfig',
    'CPConfig',
    'SampleFit',
    'DeconvolutionResult',
    'Estimator',
    'DEFAULT_NU_CANDIDATES',
]


DEFAULT_NU_CANDIDATES: tuple[float, ...] = (0.25, 0.5, 0.75)


# =============================================================================
# Enums
# =============================================================================


class MethodName(Enum):
    """
    Registered reference-based deconvolution methods.

    Attributes:
        RPC: Robust partial correlations (Huber IWLS regression)
        CBS: CIBERSORT-style nu-support-vector regression
        CP: Constrained projection (quadratic programming, Houseman 2012)
    """

    RPC = "RPC"
    CBS = "CBS"
    CP = "CP"

    @classmethod
    def parse(cls, value: MethodName | str) -> MethodName:
        """Resolve a method tag, case-insensitively."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        valid = ", ".join(m.value for m in cls)
        raise InvalidConfigurationError(f"Unknown method {value!r}; expected one of {valid}")


class ConstraintMode(Enum):
    """
    Normalization constraint for constrained projection.

    Attributes:
        INEQUALITY: Fractions sum to at most 1 (Houseman et al. 2012)
        EQUALITY: Fractions sum to exactly 1
    """

    INEQUALITY = "inequality"
    EQUALITY = "equality"

    @classmethod
    def parse(cls, value: ConstraintMode | str) -> ConstraintMode:
        """Resolve a constraint mode, case-insensitively."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        valid = ", ".join(m.value for m in cls)
        raise InvalidConfigurationError(
            f"constraint must be one of {valid} when using CP, got {value!r}"
        )


# =============================================================================
# Configuration records
# =============================================================================


def _validate_solver_limits(max_iterations, tolerance) -> None:
    """Iteration cap must be a positive integer, tolerance a positive number."""
    if isinstance(max_iterations, bool) or not isinstance(max_iterations, (int, np.integer)):
        raise InvalidConfigurationError(
            f"max_iterations must be an integer, got {max_iterations!r}"
        )
    if max_iterations < 1:
        raise InvalidConfigurationError(f"max_iterations must be >= 1, got {max_iterations}")
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float, np.number)):
        raise InvalidConfigurationError(f"tolerance must be a number, got {tolerance!r}")
    if not tolerance > 0:
        raise InvalidConfigurationError(f"tolerance must be > 0, got {tolerance}")


@dataclass(frozen=True)
class RPCConfig:
    """
    Robust partial correlation settings.

    Attributes:
        max_iterations: Upper bound on IWLS iterations
        tolerance: Convergence threshold on the coefficient change
    """

    max_iterations: int = 50
    tolerance: float = 1e-8

    def __post_init__(self) -> None:
        _validate_solver_limits(self.max_iterations, self.tolerance)


@dataclass(frozen=True)
class CBSConfig:
    """
    Support-vector regression settings.

    Attributes:
        nu_candidates: Candidate nu values, tried in order; ties go to the first
        cost: SVR penalty parameter C
    """

    nu_candidates: tuple[float, ...] = DEFAULT_NU_CANDIDATES
    cost: float = 1.0

    def __post_init__(self) -> None:
        try:
            candidates = tuple(float(nu) for nu in self.nu_candidates)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(
                f"nu_candidates must be a sequence of numbers, got {self.nu_candidates!r}"
            ) from e
        if not candidates:
            raise InvalidConfigurationError("nu_candidates must contain at least one value")
        bad = [nu for nu in candidates if not 0 < nu <= 1]
        if bad:
            raise InvalidConfigurationError(f"nu values must lie in (0, 1], got {bad}")
        if not self.cost > 0:
            raise InvalidConfigurationError(f"cost must be > 0, got {self.cost}")
        object.__setattr__(self, 'nu_candidates', candidates)


@dataclass(frozen=True)
class CPConfig:
    """
    Constrained projection settings.

    Attributes:
        constraint_mode: Inequality (sum <= 1) or equality (sum == 1)
        max_iterations: SLSQP iteration limit
        tolerance: SLSQP function tolerance and feasibility tolerance
    """

    constraint_mode: ConstraintMode = ConstraintMode.INEQUALITY
    max_iterations: int = 500
    tolerance: float = 1e-10

    def __post_init__(self) -> None:
        object.__setattr__(self, 'constraint_mode', ConstraintMode.parse(self.constraint_mode))
        _validate_solver_limits(self.max_iterations, self.tolerance)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SampleFit:
    """Fractions and solver diagnostics for one sample."""

    fractions: np.ndarray
    diagnostics: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class DeconvolutionResult:
    """
    Output of a single-reference deconvolution.

    Attributes:
        fractions: Samples × cell types fraction matrix
        method: Which estimator produced it
        n_features: Number of shared features used in the fit
        reference: Reference restricted to the shared features
        measurement: Measurement restricted to the shared features
        diagnostics: Per-sample solver diagnostics (rows = samples)

    Example:
        >>> result = RPCEstimator().estimate(beta, ref)
        >>> result.fractions.sum(axis=1)
        S1    1.0
        S2    1.0
        dtype: float64
    """

    fractions: pd.DataFrame
    method: MethodName
    n_features: int
    reference: pd.DataFrame
    measurement: pd.DataFrame
    diagnostics: pd.DataFrame

    @property
    def n_samples(self) -> int:
        return self.fractions.shape[0]

    @property
    def cell_types(self) -> list:
        return list(self.fractions.columns)

    def reconstruction_rmse(self) -> pd.Series:
        """RMSE between each observed sample and its reconstruction."""
        rmse = reconstruction_rmse(
            self.reference.to_numpy(),
            self.fractions.to_numpy(),
            self.measurement.to_numpy(),
        )
        return pd.Series(rmse, index=self.fractions.index, name='rmse')


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class Estimator(Protocol):
    """Capability shared by the RPC, CBS and CP estimators."""

    @property
    def name(self) -> MethodName:
        ...

    def estimate(
        self,
        measurement: MatrixLike,
        reference: MatrixLike,
    ) -> DeconvolutionResult:
        ...
