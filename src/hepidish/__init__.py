"""
hepidish - Reference-based cell-type deconvolution for DNA methylation data

Estimates cell-type fractions in mixed samples from reference centroids using
robust partial correlations (RPC), support-vector regression (CBS) or
constrained projection (CP), and chains a coarse and a fine-grained reference
hierarchically (HEpiDISH).
"""

__version__ = "0.1.0"

from hepidish.core.errors import (
    DeconvolutionError,
    InvalidConfigurationError,
    InvalidMatrixError,
    IncompatibleReferenceError,
    EstimationFailedError,
    InfeasibleConstraintError,
)
from hepidish.core.matrices import LabeledMatrix
from hepidish.methods import (
    MethodName,
    ConstraintMode,
    DeconvolutionResult,
    RPCEstimator,
    CBSEstimator,
    CPEstimator,
    build_estimator,
    estimate_rpc,
    estimate_cbs,
    estimate_cp,
)
from hepidish.hierarchy import HierarchicalComposer, HierarchicalResult, compose

__all__ = [
    "LabeledMatrix",
    "MethodName",
    "ConstraintMode",
    "DeconvolutionResult",
    "RPCEstimator",
    "CBSEstimator",
    "CPEstimator",
    "build_estimator",
    "estimate_rpc",
    "estimate_cbs",
    "estimate_cp",
    "HierarchicalComposer",
    "HierarchicalResult",
    "compose",
    "DeconvolutionError",
    "InvalidConfigurationError",
    "InvalidMatrixError",
    "IncompatibleReferenceError",
    "EstimationFailedError",
    "InfeasibleConstraintError",
]
