"""
Delimited-text loader for beta-value and reference matrices.

Expected layout (CSV or TSV):
    - First column: feature IDs (CpG probes), header may be empty
    - Remaining columns: samples (measurement) or cell types (reference)
    - Numeric values only, no missing values

Example:
```
"","Epi","Fib","IC"
"cg08169020",0.8866,0.8792,0.0972
"cg25913761",0.8965,0.7408,0.1296
```

Examples:
    >>> from pathlib import Path
    >>> from hepidish.io.loaders import load_matrix
    >>> beta = load_matrix(Path("beta.csv"))
    >>> ref = load_matrix(Path("centEpiFibIC.tsv"))
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from hepidish.core.matrices import LabeledMatrix

__all__ = ['load_matrix']

logger = logging.getLogger(__name__)


def load_matrix(
    path: Path,
    delimiter: Optional[str] = None,
    kind: str = "matrix",
) -> pd.DataFrame:
    """
    Load a labelled numeric matrix from a delimited text file.

    Args:
        path: Path to CSV/TSV file
        delimiter: Field separator; detected from the header line when None
        kind: Label used in validation messages ("measurement", "reference1", ...)

    Returns:
        DataFrame with feature IDs as index, validated to be finite and >= 0

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty, malformed or fails validation
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    # sep=None lets the python engine sniff the delimiter from the header line
    engine = 'python' if delimiter is None else 'c'

    try:
        df = pd.read_csv(path, sep=delimiter, engine=engine, index_col=0)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Matrix file is empty: {path}") from e
    except (pd.errors.ParserError, csv.Error) as e:
        raise ValueError(f"Failed to parse matrix file {path}: {e}") from e

    if df.empty:
        raise ValueError(f"Matrix file contains no data: {path}")

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    # Raises InvalidMatrixError (a ValueError) on NaN, negative or duplicate labels
    LabeledMatrix.from_frame(df, kind=kind)

    logger.info(f"Loaded {kind} from {path}: {df.shape[0]} features × {df.shape[1]} columns")
    return df
