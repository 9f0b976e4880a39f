"""
Reference-based deconvolution estimators.

This package provides three estimators that conform to the ``Estimator``
protocol defined in ``types``:

* :class:`RPCEstimator` -- robust partial correlations (Huber IWLS)
* :class:`CBSEstimator` -- nu-support-vector regression (CIBERSORT-style)
* :class:`CPEstimator`  -- constrained projection (quadratic programming)

``build_estimator`` selects one by its ``MethodName`` tag.
"""

from __future__ import annotations

from typing import Sequence

from hepidish.methods.types import (
    DEFAULT_NU_CANDIDATES,
    CBSConfig,
    ConstraintMode,
    CPConfig,
    DeconvolutionResult,
    Estimator,
    MethodName,
    RPCConfig,
    SampleFit,
)
from hepidish.methods.rpc import RPCEstimator, estimate_rpc
from hepidish.methods.cbs import CBSEstimator, estimate_cbs
from hepidish.methods.cp import CPEstimator, estimate_cp

__all__ = [
    "MethodName",
    "ConstraintMode",
    "RPCConfig",
    "CBSConfig",
    "CPConfig",
    "SampleFit",
    "DeconvolutionResult",
    "Estimator",
    "DEFAULT_NU_CANDIDATES",
    "RPCEstimator",
    "CBSEstimator",
    "CPEstimator",
    "estimate_rpc",
    "estimate_cbs",
    "estimate_cp",
    "build_estimator",
]


def build_estimator(
    method: MethodName | str,
    max_iterations: int = 50,
    nu_candidates: Sequence[float] = DEFAULT_NU_CANDIDATES,
    constraint_mode: ConstraintMode | str = ConstraintMode.INEQUALITY,
    n_jobs: int = 1,
) -> Estimator:
    """
    Construct the estimator for ``method`` from method-specific settings.

    Only the parameters relevant to the chosen method are validated:
    ``max_iterations`` for RPC, ``nu_candidates`` for CBS and
    ``constraint_mode`` for CP.

    Args:
        method: "RPC", "CBS" or "CP" (case-insensitive) or a MethodName
        max_iterations: RPC iteration limit
        nu_candidates: CBS candidate nu values
        constraint_mode: CP normalization constraint
        n_jobs: Worker threads for per-sample fits

    Returns:
        Configured estimator

    Raises:
        InvalidConfigurationError: Unknown method or invalid parameter
    """
    method = MethodName.parse(method)
    if method is MethodName.RPC:
        return RPCEstimator(RPCConfig(max_iterations=max_iterations), n_jobs=n_jobs)
    if method is MethodName.CBS:
        return CBSEstimator(CBSConfig(nu_candidates=tuple(nu_candidates)), n_jobs=n_jobs)
    return CPEstimator(CPConfig(constraint_mode=constraint_mode), n_jobs=n_jobs)
