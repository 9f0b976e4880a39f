"""
CSV writer for estimated fraction matrices.

Output layout:
    - First column: sample IDs
    - Remaining columns: cell types, fractions in [0, 1]

Examples:
    >>> from pathlib import Path
    >>> from hepidish.io.writers import write_fractions
    >>> write_fractions(fractions, Path("results/fractions.csv"))
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

__all__ = ['write_fractions']

logger = logging.getLogger(__name__)


def write_fractions(fractions: pd.DataFrame, path: Path) -> Path:
    """
    Write a samples × cell types fraction matrix to CSV.

    Parent directories are created as needed. A ``.csv`` suffix is added
    when the path has none.

    Args:
        fractions: Samples × cell types
        path: Output file path

    Returns:
        Path actually written
    """
    path = Path(path)
    if not path.suffix:
        path = path.with_suffix('.csv')
    path.parent.mkdir(parents=True, exist_ok=True)

    fractions.to_csv(path, index_label='sample')
    logger.info(f"Wrote fractions to {path} ({fractions.shape[0]} samples × {fractions.shape[1]} cell types)")
    return path
