"""
Hierarchical deconvolution (HEpiDISH).

Two references are fitted independently against the same measurement:

    - reference1: coarse cell types, one of which (the aggregate) stands for
      a whole lineage, e.g. epithelial cells, fibroblasts, total immune cells
    - reference2: sub-types of that aggregate, e.g. B cells, NK cells,
      monocytes, ...

The aggregate column of reference1's fractions is then replaced by
reference2's fractions scaled by the aggregate fraction, so that mass is
redistributed among the sub-types rather than created or destroyed.

Examples:
    >>> from hepidish import compose
    >>> frac = compose(beta, cent_epi_fib_ic, cent_blood_sub,
    ...                aggregate_index=3, method="RPC")
    >>> list(frac.columns)
    ['Epi', 'Fib', 'B', 'NK', 'CD4T', 'CD8T', 'Mono', 'Neutro', 'Eosino']

References:
    Zheng SC, Webster AP, Dong D, et al. A novel cell-type deconvolution
    algorithm reveals substantial contamination by immune cells in saliva,
    buccal and cervix. Epigenomics (2018) 10: 925-940.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Hashable, Sequence, Union

import numpy as np
import pandas as pd

from hepidish.core.errors import DeconvolutionError, InvalidConfigurationError
from hepidish.core.matrices import LabeledMatrix, MatrixLike, as_labeled
from hepidish.methods import build_estimator
from hepidish.methods.types import (
    DEFAULT_NU_CANDIDATES,
    ConstraintMode,
    DeconvolutionResult,
    Estimator,
    MethodName,
)

__all__ = ['HierarchicalComposer', 'HierarchicalResult', 'compose', 'merge_fractions']

logger = logging.getLogger(__name__)

AggregateIndex = Union[int, Hashable]


@dataclass(frozen=True)
class HierarchicalResult:
    """
    Combined fractions plus the two component fits.

    Attributes:
        fractions: Samples × (cell types1 − 1 + cell types2)
        primary: Fit against reference1
        secondary: Fit against reference2
        aggregate: Label of the reference1 column that was subdivided
    """

    fractions: pd.DataFrame
    primary: DeconvolutionResult
    secondary: DeconvolutionResult
    aggregate: Hashable


def merge_fractions(
    fractions1: pd.DataFrame,
    fractions2: pd.DataFrame,
    aggregate_position: int,
) -> pd.DataFrame:
    """
    Replace the aggregate column of ``fractions1`` with scaled ``fractions2``.

    Args:
        fractions1: Samples × coarse cell types
        fractions2: Samples × sub-types (same sample order)
        aggregate_position: 0-based column position of the aggregate in fractions1

    Returns:
        Non-aggregate columns of fractions1 (original order) followed by the
        columns of fractions2 multiplied by the aggregate fraction
    """
    if not fractions1.index.equals(fractions2.index):
        raise ValueError("fractions1 and fractions2 must share the same sample index")

    keep = [i for i in range(fractions1.shape[1]) if i != aggregate_position]
    parent = fractions1.iloc[:, aggregate_position].to_numpy()

    scaled = pd.DataFrame(
        fractions2.to_numpy() * parent[:, np.newaxis],
        index=fractions2.index,
        columns=fractions2.columns,
    )
    return pd.concat([fractions1.iloc[:, keep], scaled], axis=1)


class HierarchicalComposer:
    """
    Chains two independent deconvolutions into one fraction matrix.

    Configuration is validated when the composer is built, so an invalid
    method or constraint mode fails before any numeric work.

    Attributes:
        method: Which estimator is used for both references
        estimator: The configured estimator
        parallel_references: Fit the two references concurrently

    Example:
        >>> composer = HierarchicalComposer(method="CP", constraint_mode="equality")
        >>> result = composer.run(beta, ref1, ref2, aggregate_index=3)
        >>> result.primary.fractions.shape, result.fractions.shape
    """

    def __init__(
        self,
        method: MethodName | str = MethodName.RPC,
        max_iterations: int = 50,
        nu_candidates: Sequence[float] = DEFAULT_NU_CANDIDATES,
        constraint_mode: ConstraintMode | str = ConstraintMode.INEQUALITY,
        n_jobs: int = 1,
        parallel_references: bool = False,
    ) -> None:
        self.method = MethodName.parse(method)
        if self.method is MethodName.CP:
            constraint_mode = ConstraintMode.parse(constraint_mode)
        self.estimator: Estimator = build_estimator(
            self.method,
            max_iterations=max_iterations,
            nu_candidates=nu_candidates,
            constraint_mode=constraint_mode,
            n_jobs=n_jobs,
        )
        self.parallel_references = parallel_references

    def run(
        self,
        measurement: MatrixLike,
        reference1: MatrixLike,
        reference2: MatrixLike,
        aggregate_index: AggregateIndex,
    ) -> HierarchicalResult:
        """
        Fit both references and merge the fractions.

        Args:
            measurement: Features × samples
            reference1: Features × coarse cell types
            reference2: Features × sub-types of the aggregate cell type
            aggregate_index: 1-based column index (or column label) of the
                aggregate cell type in reference1

        Returns:
            HierarchicalResult

        Raises:
            InvalidConfigurationError: Bad aggregate_index or empty reference2
            DeconvolutionError: Any estimator failure, with ``reference`` set
                to "reference1" or "reference2"
        """
        measurement = as_labeled(measurement, "measurement")
        reference1 = self._annotated(as_labeled, "reference1", reference1, "reference1")
        reference2 = self._annotated(as_labeled, "reference2", reference2, "reference2")

        position = resolve_aggregate_index(reference1, aggregate_index)
        if reference2.n_cols < 1:
            raise InvalidConfigurationError(
                "reference2 must have at least one column", reference="reference2"
            )

        aggregate = reference1.col_ids[position]
        logger.info(
            f"Hierarchical {self.method.value}: subdividing {aggregate!r} of reference1 "
            f"({reference1.n_cols} cell types) into {reference2.n_cols} sub-types"
        )

        if self.parallel_references:
            with ThreadPoolExecutor(max_workers=2) as executor:
                future1 = executor.submit(
                    self._annotated, self.estimator.estimate, "reference1", measurement, reference1
                )
                future2 = executor.submit(
                    self._annotated, self.estimator.estimate, "reference2", measurement, reference2
                )
                primary = future1.result()
                secondary = future2.result()
        else:
            primary = self._annotated(self.estimator.estimate, "reference1", measurement, reference1)
            secondary = self._annotated(self.estimator.estimate, "reference2", measurement, reference2)

        fractions = merge_fractions(primary.fractions, secondary.fractions, position)
        return HierarchicalResult(
            fractions=fractions,
            primary=primary,
            secondary=secondary,
            aggregate=aggregate,
        )

    def compose(
        self,
        measurement: MatrixLike,
        reference1: MatrixLike,
        reference2: MatrixLike,
        aggregate_index: AggregateIndex,
    ) -> pd.DataFrame:
        """Combined fraction matrix only (see ``run``)."""
        return self.run(measurement, reference1, reference2, aggregate_index).fractions

    @staticmethod
    def _annotated(func, label: str, *args):
        try:
            return func(*args)
        except DeconvolutionError as e:
            e.reference = label
            raise

    def __repr__(self) -> str:
        return f"HierarchicalComposer(method={self.method.value!r}, estimator={self.estimator!r})"


def resolve_aggregate_index(reference1: LabeledMatrix, aggregate_index: AggregateIndex) -> int:
    """
    Map a 1-based index or a column label of reference1 to a 0-based position.

    Raises:
        InvalidConfigurationError: Index out of range or unknown label
    """
    n_cols = reference1.n_cols
    if isinstance(aggregate_index, (int, np.integer)) and not isinstance(aggregate_index, bool):
        if not 1 <= aggregate_index <= n_cols:
            raise InvalidConfigurationError(
                f"aggregate_index must be between 1 and {n_cols}, got {aggregate_index}",
                reference="reference1",
            )
        return int(aggregate_index) - 1
    if aggregate_index in reference1.col_ids:
        return int(reference1.col_ids.get_loc(aggregate_index))
    raise InvalidConfigurationError(
        f"aggregate_index {aggregate_index!r} is neither a 1-based position nor a "
        f"column of reference1 ({list(reference1.col_ids)})",
        reference="reference1",
    )


def compose(
    measurement: MatrixLike,
    reference1: MatrixLike,
    reference2: MatrixLike,
    aggregate_index: AggregateIndex,
    method: MethodName | str = MethodName.RPC,
    max_iterations: int = 50,
    nu_candidates: Sequence[float] = DEFAULT_NU_CANDIDATES,
    constraint_mode: ConstraintMode | str = ConstraintMode.INEQUALITY,
    n_jobs: int = 1,
    parallel_references: bool = False,
) -> pd.DataFrame:
    """
    Hierarchical deconvolution with two non-overlapping references.

    Args:
        measurement: Features × samples (e.g. beta values)
        reference1: Primary centroids, features × coarse cell types
        reference2: Secondary centroids, features × sub-types of the
            aggregate cell type in reference1
        aggregate_index: 1-based column index (or label) of the aggregate
            cell type in reference1
        method: "RPC", "CBS" or "CP"
        max_iterations: RPC only, IWLS iteration limit
        nu_candidates: CBS only, candidate nu values
        constraint_mode: CP only, "inequality" or "equality"
        n_jobs: Worker threads for per-sample fits
        parallel_references: Fit the two references concurrently

    Returns:
        Samples × (reference1 columns minus aggregate, then reference2 columns)

    Raises:
        InvalidConfigurationError: Invalid method, constraint, or aggregate index
        DeconvolutionError: Estimator failure, annotated with the reference
    """
    composer = HierarchicalComposer(
        method=method,
        max_iterations=max_iterations,
        nu_candidates=nu_candidates,
        constraint_mode=constraint_mode,
        n_jobs=n_jobs,
        parallel_references=parallel_references,
    )
    return composer.compose(measurement, reference1, reference2, aggregate_index)
