"""
Pytest configuration and shared fixtures for deconvolution tests.

Synthetic data mimics Illumina beta values: reference centroids are drawn
from a U-shaped Beta(0.5, 0.5) distribution (most CpGs near 0 or 1) and
mixtures are weighted sums of centroids plus small Gaussian noise, clipped
to [0, 1].
"""

import numpy as np
import pandas as pd
import pytest
from pathlib import Path


COARSE_TYPES = ["Epi", "Fib", "IC"]
IMMUNE_SUBTYPES = ["B", "NK", "Mono", "Neutro"]
NON_IMMUNE_TYPES = ["Epi", "Fib"]


def cpg_ids(start: int, stop: int) -> list:
    """Probe-style identifiers cg00000000, cg00000001, ..."""
    return [f"cg{i:08d}" for i in range(start, stop)]


def generate_reference(
    n_features: int,
    cell_types: list,
    offset: int = 0,
    seed: int = 42,
) -> pd.DataFrame:
    """
    Generate a features × cell types centroid matrix with values in [0, 1].

    Args:
        n_features: Number of CpG features
        cell_types: Column labels
        offset: First probe number (controls overlap with other references)
        seed: Random seed for reproducibility
    """
    rng = np.random.RandomState(seed)
    data = rng.beta(0.5, 0.5, size=(n_features, len(cell_types)))
    return pd.DataFrame(data, index=cpg_ids(offset, offset + n_features), columns=cell_types)


def generate_mixture(
    reference: pd.DataFrame,
    fractions: pd.DataFrame,
    noise: float = 0.01,
    seed: int = 7,
) -> pd.DataFrame:
    """
    Mix reference centroids with known fractions.

    Args:
        reference: Features × cell types
        fractions: Samples × cell types (columns matching reference)
        noise: Standard deviation of additive Gaussian noise
        seed: Random seed for reproducibility

    Returns:
        Features × samples measurement matrix, clipped to [0, 1]
    """
    rng = np.random.RandomState(seed)
    data = reference.to_numpy() @ fractions[reference.columns].to_numpy().T
    if noise > 0:
        data = data + rng.normal(0, noise, size=data.shape)
    return pd.DataFrame(np.clip(data, 0.0, 1.0), index=reference.index, columns=fractions.index)


@pytest.fixture
def dominant_fractions():
    """Samples × 3 cell types, each sample dominated by one cell type."""
    rows = [
        [0.7, 0.2, 0.1],
        [0.1, 0.7, 0.2],
        [0.2, 0.1, 0.7],
        [0.6, 0.1, 0.3],
        [0.25, 0.15, 0.6],
    ]
    return pd.DataFrame(rows, index=[f"S{i + 1}" for i in range(len(rows))], columns=COARSE_TYPES)


@pytest.fixture
def simple_reference():
    """300 features × Epi/Fib/IC."""
    return generate_reference(300, COARSE_TYPES, seed=11)


@pytest.fixture
def simple_measurement(simple_reference, dominant_fractions):
    """Noisy mixtures of simple_reference with dominant_fractions."""
    return generate_mixture(simple_reference, dominant_fractions, noise=0.01)


@pytest.fixture
def hierarchical_truth():
    """
    True fractions over the fine-grained cell types.

    The IC fraction of reference1 is the sum of the immune sub-types.
    """
    rng = np.random.RandomState(3)
    data = rng.dirichlet(np.ones(len(NON_IMMUNE_TYPES) + len(IMMUNE_SUBTYPES)), size=6)
    return pd.DataFrame(
        data,
        index=[f"S{i + 1}" for i in range(6)],
        columns=NON_IMMUNE_TYPES + IMMUNE_SUBTYPES,
    )


@pytest.fixture
def fine_profiles():
    """Centroids of every fine-grained cell type over 450 features."""
    return generate_reference(450, NON_IMMUNE_TYPES + IMMUNE_SUBTYPES, seed=5)


@pytest.fixture
def reference1(fine_profiles, hierarchical_truth):
    """
    Coarse reference (features 0-199): Epi, Fib and an aggregate IC profile.

    IC is the average immune profile weighted by mean sub-type abundance.
    """
    weights = hierarchical_truth[IMMUNE_SUBTYPES].mean()
    weights = weights / weights.sum()
    coarse = fine_profiles.iloc[:200]
    ref = coarse[NON_IMMUNE_TYPES].copy()
    ref["IC"] = coarse[IMMUNE_SUBTYPES].to_numpy() @ weights.to_numpy()
    return ref


@pytest.fixture
def reference2(fine_profiles):
    """Immune sub-type reference on features 200-399."""
    return fine_profiles.iloc[200:400][IMMUNE_SUBTYPES].copy()


@pytest.fixture
def measurement(fine_profiles, hierarchical_truth):
    """450 features × 6 samples mixed from the fine-grained profiles."""
    return generate_mixture(fine_profiles, hierarchical_truth, noise=0.01)


@pytest.fixture
def write_csv(tmp_path):
    """Write a DataFrame as CSV under tmp_path and return its path."""
    def _write(frame: pd.DataFrame, name: str, sep: str = ",") -> Path:
        path = tmp_path / name
        frame.to_csv(path, sep=sep)
        return path
    return _write
