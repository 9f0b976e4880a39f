"""
Labelled matrices for measurement and reference data.

Deconvolution works on two kinds of matrix that share a feature axis:

    - Measurement (beta) matrix: features (CpGs) × samples
    - Reference (centroid) matrix: features (CpGs) × cell types

Features are matched by label, never by position: a reference built on
one array platform can be applied to data from another as long as the
probe identifiers agree. ``LabeledMatrix`` keeps data and labels together
and validates the invariants the estimators rely on (2D, unique labels,
finite non-negative values).

Engineering Design:
    - Immutable: Operations return new instances
    - Validated: Constructor checks shape, labels and values
    - Interoperable: Estimators accept either a LabeledMatrix or a DataFrame

Examples:
    >>> import pandas as pd
    >>> from hepidish.core.matrices import LabeledMatrix, align_features
    >>>
    >>> beta = pd.DataFrame({"S1": [0.1, 0.9, 0.5]}, index=["cg1", "cg2", "cg3"])
    >>> ref = pd.DataFrame({"Epi": [0.2, 0.8], "IC": [0.9, 0.1]}, index=["cg2", "cg1"])
    >>> beta_aligned, ref_aligned = align_features(beta, ref)
    >>> list(beta_aligned.row_ids)
    ['cg2', 'cg1']
"""

from __future__ import annotations

import logging
from typing import Union

import numpy as np
import pandas as pd

from hepidish.core.errors import IncompatibleReferenceError, InvalidMatrixError

__all__ = ['LabeledMatrix', 'MatrixLike', 'as_labeled', 'align_features']

logger = logging.getLogger(__name__)


class LabeledMatrix:
    """
    Immutable container for a numeric matrix with row and column labels.

    Attributes:
        data: Numeric matrix (rows × columns), float64, read-only copy of the input
        row_ids: Row labels (feature identifiers)
        col_ids: Column labels (sample or cell-type identifiers)
        kind: Short description used in error messages ("measurement", "reference")

    Shape Invariants:
        - data.shape == (len(row_ids), len(col_ids))
        - row_ids and col_ids are unique
        - all values are finite and >= 0
    """

    def __init__(
        self,
        data: np.ndarray,
        row_ids: pd.Index,
        col_ids: pd.Index,
        kind: str = "matrix",
    ):
        """
        Initialize LabeledMatrix with validation.

        Args:
            data: Numeric matrix (rows × columns)
            row_ids: Row identifiers (CpGs, genes, ...)
            col_ids: Column identifiers (samples or cell types)
            kind: Label used in error messages

        Raises:
            InvalidMatrixError: If shapes are inconsistent, labels repeat,
                or values are missing, infinite or negative
        """
        if not isinstance(data, np.ndarray):
            raise InvalidMatrixError(f"{kind} data must be np.ndarray, got {type(data)}")
        if not isinstance(row_ids, pd.Index):
            raise InvalidMatrixError(f"{kind} row_ids must be pd.Index, got {type(row_ids)}")
        if not isinstance(col_ids, pd.Index):
            raise InvalidMatrixError(f"{kind} col_ids must be pd.Index, got {type(col_ids)}")

        if data.ndim != 2:
            raise InvalidMatrixError(f"{kind} must be 2D, got shape {data.shape}")

        n_rows, n_cols = data.shape
        if len(row_ids) != n_rows:
            raise InvalidMatrixError(
                f"{kind} row_ids length ({len(row_ids)}) must match data rows ({n_rows})"
            )
        if len(col_ids) != n_cols:
            raise InvalidMatrixError(
                f"{kind} col_ids length ({len(col_ids)}) must match data columns ({n_cols})"
            )
        if not row_ids.is_unique:
            dupes = row_ids[row_ids.duplicated()].unique().tolist()[:5]
            raise InvalidMatrixError(f"{kind} has duplicate feature labels: {dupes}")
        if not col_ids.is_unique:
            dupes = col_ids[col_ids.duplicated()].unique().tolist()[:5]
            raise InvalidMatrixError(f"{kind} has duplicate column labels: {dupes}")

        try:
            data = np.array(data, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidMatrixError(f"{kind} contains non-numeric values: {e}") from e

        if not np.all(np.isfinite(data)):
            n_bad = int(np.sum(~np.isfinite(data)))
            raise InvalidMatrixError(
                f"{kind} contains {n_bad} missing or infinite values; "
                "missing values are not allowed"
            )
        if np.any(data < 0):
            n_neg = int(np.sum(data < 0))
            raise InvalidMatrixError(
                f"{kind} contains {n_neg} negative values; all values must be >= 0"
            )

        data.setflags(write=False)
        self._data = data
        self._row_ids = row_ids
        self._col_ids = col_ids
        self._kind = kind

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, kind: str = "matrix") -> LabeledMatrix:
        """Build from a DataFrame (index = rows, columns = columns)."""
        if not isinstance(frame, pd.DataFrame):
            raise InvalidMatrixError(f"{kind} must be a pandas DataFrame, got {type(frame)}")
        try:
            data = frame.to_numpy(dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidMatrixError(f"{kind} contains non-numeric values: {e}") from e
        return cls(data, pd.Index(frame.index), pd.Index(frame.columns), kind=kind)

    def to_frame(self) -> pd.DataFrame:
        """Return a DataFrame copy of this matrix."""
        return pd.DataFrame(self._data.copy(), index=self._row_ids, columns=self._col_ids)

    @property
    def data(self) -> np.ndarray:
        """Numeric matrix (rows × columns)."""
        return self._data

    @property
    def row_ids(self) -> pd.Index:
        """Feature labels."""
        return self._row_ids

    @property
    def col_ids(self) -> pd.Index:
        """Sample or cell-type labels."""
        return self._col_ids

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_rows(self) -> int:
        return self._data.shape[0]

    @property
    def n_cols(self) -> int:
        return self._data.shape[1]

    def select_rows(self, labels: pd.Index) -> LabeledMatrix:
        """
        Subset (and reorder) rows by label.

        Args:
            labels: Row labels to keep, in the desired order. All must exist.

        Returns:
            New LabeledMatrix with the selected rows

        Raises:
            KeyError: If any label is absent
        """
        positions = self._row_ids.get_indexer(labels)
        if np.any(positions < 0):
            missing = list(pd.Index(labels)[positions < 0][:5])
            raise KeyError(f"Labels not found in {self._kind}: {missing}")
        return LabeledMatrix(
            data=self._data[positions, :],
            row_ids=self._row_ids[positions],
            col_ids=self._col_ids,
            kind=self._kind,
        )

    def copy(self) -> LabeledMatrix:
        """Deep copy of this matrix."""
        return LabeledMatrix(
            data=self._data.copy(),
            row_ids=self._row_ids.copy(),
            col_ids=self._col_ids.copy(),
            kind=self._kind,
        )

    def __repr__(self) -> str:
        return (
            f"LabeledMatrix({self._kind}: {self.n_rows} features × {self.n_cols} columns)"
        )


MatrixLike = Union[LabeledMatrix, pd.DataFrame]


def as_labeled(matrix: MatrixLike, kind: str) -> LabeledMatrix:
    """
    Coerce a DataFrame or LabeledMatrix into a validated LabeledMatrix.

    Args:
        matrix: Input matrix
        kind: Label used in error messages ("measurement", "reference1", ...)

    Returns:
        Validated LabeledMatrix

    Raises:
        InvalidMatrixError: If the input is of the wrong type or fails validation
    """
    if isinstance(matrix, LabeledMatrix):
        return matrix
    if isinstance(matrix, pd.DataFrame):
        return LabeledMatrix.from_frame(matrix, kind=kind)
    raise InvalidMatrixError(
        f"{kind} must be a pandas DataFrame or LabeledMatrix, got {type(matrix)}"
    )


def align_features(
    measurement: MatrixLike,
    reference: MatrixLike,
) -> tuple[LabeledMatrix, LabeledMatrix]:
    """
    Restrict measurement and reference to their shared feature labels.

    Shared features keep the reference's row order.

    Args:
        measurement: Features × samples
        reference: Features × cell types

    Returns:
        (measurement, reference) restricted to the common features

    Raises:
        IncompatibleReferenceError: If no feature label is shared
        InvalidMatrixError: If either input fails validation
    """
    measurement = as_labeled(measurement, kind="measurement")
    reference = as_labeled(reference, kind="reference")

    if reference.n_cols == 0:
        raise InvalidMatrixError("reference must have at least one cell-type column")
    if measurement.n_cols == 0:
        raise InvalidMatrixError("measurement must have at least one sample column")

    shared = reference.row_ids[reference.row_ids.isin(measurement.row_ids)]
    if len(shared) == 0:
        raise IncompatibleReferenceError(
            f"No overlapping features between measurement ({measurement.n_rows} features) "
            f"and reference ({reference.n_rows} features)"
        )

    n_dropped = reference.n_rows - len(shared)
    if n_dropped:
        logger.warning(
            f"{n_dropped}/{reference.n_rows} reference features absent from measurement; "
            f"using {len(shared)} shared features"
        )

    return measurement.select_rows(shared), reference.select_rows(shared)
