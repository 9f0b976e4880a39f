"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--nu 1.5``, ``--workers 0``).  They are intended to be used
as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for iteration and worker counts (>= 1)."""
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}") from None
    if count < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {count}")
    return count


def _nu(value: str) -> float:
    """argparse type for nu values in the half-open interval (0, 1]."""
    fvalue = float(value)
    if not (0 < fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid nu (must be in (0, 1])"
        )
    return fvalue


def _aggregate_index(value: str) -> int | str:
    """argparse type for a 1-based column index or a column label."""
    try:
        ivalue = int(value)
    except ValueError:
        return value
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a valid 1-based column index")
    return ivalue
