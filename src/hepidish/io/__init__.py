"""
I/O module for loading input matrices and writing fraction estimates.

Key Functions:
    - load_matrix: Load a beta or reference matrix from CSV/TSV
    - write_fractions: Write a fraction matrix to CSV

Examples:
    >>> from hepidish.io import load_matrix, write_fractions
    >>> from hepidish import compose
    >>>
    >>> beta = load_matrix("beta.csv", kind="measurement")
    >>> frac = compose(beta, load_matrix("ref1.csv"), load_matrix("ref2.csv"), 3)
    >>> write_fractions(frac, "fractions.csv")
"""

from hepidish.io.loaders import load_matrix
from hepidish.io.writers import write_fractions

__all__ = [
    'load_matrix',
    'write_fractions',
]
