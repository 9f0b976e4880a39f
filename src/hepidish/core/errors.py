"""
Exception taxonomy for reference-based deconvolution.

Every error raised by the estimators and the hierarchical composer derives
from ``DeconvolutionError``. Configuration and data problems additionally
subclass ``ValueError``; numeric failures subclass ``RuntimeError``, so
callers that only know the builtin hierarchy still catch them sensibly.

The ``reference`` attribute is filled in by the hierarchical composer to
record which reference ("reference1" or "reference2") triggered the failure.

Examples:
    >>> from hepidish.core.errors import DeconvolutionError
    >>> try:
    ...     fractions = compose(beta, ref1, ref2, aggregate_index=3, method="CP")
    ... except DeconvolutionError as e:
    ...     print(f"{e.reference}: {e}")
"""

from __future__ import annotations

from typing import Hashable, Optional

__all__ = [
    'DeconvolutionError',
    'InvalidConfigurationError',
    'InvalidMatrixError',
    'IncompatibleReferenceError',
    'EstimationFailedError',
    'InfeasibleConstraintError',
]


class DeconvolutionError(Exception):
    """Base class for all deconvolution failures."""

    def __init__(self, message: str, reference: Optional[str] = None) -> None:
        super().__init__(message)
        self.reference = reference

    def __str__(self) -> str:
        message = super().__str__()
        if self.reference is not None:
            return f"[{self.reference}] {message}"
        return message


class InvalidConfigurationError(DeconvolutionError, ValueError):
    """Unknown method, unknown constraint mode, or out-of-range parameter."""


class InvalidMatrixError(DeconvolutionError, ValueError):
    """Input matrix is malformed (missing/negative values, duplicate labels)."""


class IncompatibleReferenceError(DeconvolutionError, ValueError):
    """Measurement and reference share no feature labels."""


class _SampleError(DeconvolutionError):
    """Failure tied to a single sample's fit."""

    def __init__(
        self,
        message: str,
        sample_index: int,
        sample_id: Optional[Hashable] = None,
        reference: Optional[str] = None,
    ) -> None:
        super().__init__(message, reference=reference)
        self.sample_index = sample_index
        self.sample_id = sample_id


class EstimationFailedError(_SampleError, RuntimeError):
    """A per-sample fit could not be produced."""


class InfeasibleConstraintError(_SampleError, RuntimeError):
    """The quadratic program reported infeasibility."""
