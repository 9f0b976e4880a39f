"""
Core data structures and numeric primitives for deconvolution.

1. LabeledMatrix: Validated, label-aware matrix (features × samples or cell types)
2. Error taxonomy: DeconvolutionError and its subclasses
3. linalg: Cross-products, non-negativity clamping, renormalization

Examples:
    >>> from hepidish.core import LabeledMatrix, align_features
    >>> beta, ref = align_features(beta_df, reference_df)
    >>> print(beta.n_rows, "shared CpGs")
"""

from hepidish.core.errors import (
    DeconvolutionError,
    InvalidConfigurationError,
    InvalidMatrixError,
    IncompatibleReferenceError,
    EstimationFailedError,
    InfeasibleConstraintError,
)
from hepidish.core.matrices import LabeledMatrix, MatrixLike, as_labeled, align_features

__all__ = [
    'DeconvolutionError',
    'InvalidConfigurationError',
    'InvalidMatrixError',
    'IncompatibleReferenceError',
    'EstimationFailedError',
    'InfeasibleConstraintError',
    'LabeledMatrix',
    'MatrixLike',
    'as_labeled',
    'align_features',
]
