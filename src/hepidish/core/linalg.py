"""
Shared numeric primitives for the deconvolution estimators.

Functions:
    crossprod: Matrix cross-product (aᵀ·b)
    clamp_nonnegative: Zero out negative coefficients
    renormalize: Rescale coefficient vectors to sum to one
    reconstruction_rmse: Per-sample RMSE between observed and reconstructed profiles
    is_valid_fraction: Check a clamped coefficient vector can be renormalized
"""

from __future__ import annotations

from typing import Optional

import numpy as np

__all__ = [
    'crossprod',
    'clamp_nonnegative',
    'renormalize',
    'reconstruction_rmse',
    'is_valid_fraction',
]


def crossprod(a: np.ndarray, b: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Compute the cross-product ``aᵀ·b`` (``aᵀ·a`` when ``b`` is omitted).

    Args:
        a: Matrix of shape (n, p)
        b: Matrix or vector with n rows; defaults to ``a``

    Returns:
        Array of shape (p, q), or (p,) when ``b`` is a vector

    Examples:
        >>> ref = np.array([[1.0, 0.0], [0.0, 2.0]])
        >>> crossprod(ref)
        array([[1., 0.],
               [0., 4.]])
    """
    a = np.asarray(a, dtype=float)
    if b is None:
        return a.T @ a
    return a.T @ np.asarray(b, dtype=float)


def clamp_nonnegative(values: np.ndarray) -> np.ndarray:
    """Return a copy of ``values`` with negative entries set to zero."""
    values = np.asarray(values, dtype=float)
    return np.where(values < 0, 0.0, values)


def renormalize(values: np.ndarray, axis: int = -1) -> np.ndarray:
    """
    Rescale ``values`` so that each vector along ``axis`` sums to one.

    Vectors with a zero total come back as NaN rather than raising, so the
    caller decides whether a degenerate fit is an error.

    Args:
        values: Non-negative coefficients
        axis: Axis along which totals are taken

    Returns:
        Array of the same shape with unit sums along ``axis``
    """
    values = np.asarray(values, dtype=float)
    totals = values.sum(axis=axis, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        return values / totals


def reconstruction_rmse(
    reference: np.ndarray,
    fractions: np.ndarray,
    observed: np.ndarray,
) -> np.ndarray:
    """
    Root-mean-square reconstruction error per sample.

    Args:
        reference: Reference centroids (features × cell types)
        fractions: Estimated fractions, (cell types,) or (samples × cell types)
        observed: Observed profiles, (features,) or (features × samples)

    Returns:
        Scalar array for a single sample, or one RMSE per sample
    """
    reconstructed = np.asarray(reference, dtype=float) @ np.asarray(fractions, dtype=float).T
    residuals = np.asarray(observed, dtype=float) - reconstructed
    return np.sqrt(np.mean(residuals ** 2, axis=0))


def is_valid_fraction(coefficients: np.ndarray) -> bool:
    """True if clamped coefficients are finite with a positive total."""
    coefficients = np.asarray(coefficients, dtype=float)
    if not np.all(np.isfinite(coefficients)):
        return False
    return bool(np.any(coefficients > 0))
