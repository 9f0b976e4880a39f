"""
Shared base class for the RPC, CBS and CP estimators.

The three estimators share the whole ``estimate()`` workflow: aligning the
measurement to the reference by feature label, preparing per-reference
quantities once, fitting each sample independently (sequentially or on a
thread pool), and packaging fractions and diagnostics into a
``DeconvolutionResult``. Subclasses only define the per-sample fit.
"""

from __future__ import annotations

import abc
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Hashable

import numpy as np
import pandas as pd

from hepidish.core.errors import InvalidConfigurationError
from hepidish.core.matrices import MatrixLike, align_features
from hepidish.methods.types import DeconvolutionResult, MethodName, SampleFit

logger = logging.getLogger(__name__)


class _BaseEstimator(abc.ABC):
    """
    Shared skeleton for reference-based estimators.

    Subclasses implement:
        * ``name`` property  (MethodName)
        * ``_prepare``  (per-reference precomputation, optional)
        * ``_fit_sample``  (fractions + diagnostics for one sample)
    """

    def __init__(self, n_jobs: int = 1) -> None:
        if n_jobs < 1:
            raise InvalidConfigurationError(f"n_jobs must be >= 1, got {n_jobs}")
        self.n_jobs = n_jobs

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def name(self) -> MethodName:  # pragma: no cover
        ...

    def _prepare(self, reference: np.ndarray) -> object:
        """Return per-reference state shared by every sample fit."""
        return None

    @abc.abstractmethod
    def _fit_sample(
        self,
        reference: np.ndarray,
        sample: np.ndarray,
        prepared: object,
        sample_index: int,
        sample_id: Hashable,
    ) -> SampleFit:
        """Fit one sample; raise a DeconvolutionError subclass on failure."""
        ...

    # ------------------------------------------------------------------
    # Shared estimate() implementation
    # ------------------------------------------------------------------

    def estimate(
        self,
        measurement: MatrixLike,
        reference: MatrixLike,
    ) -> DeconvolutionResult:
        """
        Estimate cell-type fractions for every sample against one reference.

        Workflow:
            1. Restrict measurement and reference to shared feature labels
            2. Precompute per-reference quantities
            3. Fit each sample independently (thread pool if n_jobs > 1)
            4. Assemble fractions (samples × cell types) in sample order

        Args:
            measurement: Features × samples (DataFrame or LabeledMatrix)
            reference: Features × cell types (DataFrame or LabeledMatrix)

        Returns:
            DeconvolutionResult with fractions and per-sample diagnostics

        Raises:
            IncompatibleReferenceError: No shared features
            InvalidMatrixError: Malformed input
            EstimationFailedError / InfeasibleConstraintError: A sample fit failed
        """
        beta, ref = align_features(measurement, reference)

        logger.info(
            f"{self.name.value}: {beta.n_cols} samples × {ref.n_cols} cell types "
            f"on {ref.n_rows} shared features"
        )

        ref_data = ref.data
        prepared = self._prepare(ref_data)

        def fit(index: int) -> SampleFit:
            return self._fit_sample(
                ref_data, beta.data[:, index], prepared, index, beta.col_ids[index]
            )

        indices = range(beta.n_cols)
        if self.n_jobs > 1 and beta.n_cols > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                fits = list(executor.map(fit, indices))
        else:
            fits = [fit(i) for i in indices]

        fractions = pd.DataFrame(
            np.vstack([f.fractions for f in fits]),
            index=beta.col_ids,
            columns=ref.col_ids,
        )
        diagnostics = pd.DataFrame(
            [f.diagnostics for f in fits],
            index=beta.col_ids,
        )

        return DeconvolutionResult(
            fractions=fractions,
            method=self.name,
            n_features=ref.n_rows,
            reference=ref.to_frame(),
            measurement=beta.to_frame(),
            diagnostics=diagnostics,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(n_jobs={self.n_jobs})"
