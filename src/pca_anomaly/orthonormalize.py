"""
In-place stabilized (modified) Gram-Schmidt over matrix rows.
"""

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class OrthonormalizationResult:
    matrix: np.ndarray
    degenerate_rows: int


def orthonormalize_rows(matrix: np.ndarray, tolerance: float = 1e-10) -> OrthonormalizationResult:
    """
    Orthonormalize the rows of ``matrix`` in place.

    Row i is normalized first, then its projection is removed from every later
    row j > i using the already normalized row. Rows whose remaining norm falls
    below ``tolerance`` times the largest initial row norm are linearly
    dependent on the previous ones; they are set to zero and counted instead
    of being divided by a vanishing norm.

    Args:
        matrix: (k x d) float array, modified in place
        tolerance: Relative norm under which a row is treated as degenerate

    Returns:
        OrthonormalizationResult holding the same buffer and the number of
        degenerate rows
    """
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {matrix.shape}")

    num_rows = matrix.shape[0]
    norms = np.linalg.norm(matrix, axis=1)
    reference = float(norms.max()) if num_rows else 0.0
    threshold = tolerance * reference
    degenerate = 0

    for i in range(num_rows):
        row = matrix[i]
        norm = float(np.linalg.norm(row))
        if not norm > threshold or norm == 0.0:
            row.fill(0.0)
            degenerate += 1
            continue
        row /= norm

        # Make the next rows orthogonal to the normalized row
        if i + 1 < num_rows:
            rest = matrix[i + 1 :]
            rest -= np.outer(rest @ row, row)

    if degenerate:
        logger.info(
            f"Gram-Schmidt found {degenerate} of {num_rows} linearly dependent directions; "
            f"they were zeroed (data rank is lower than the oversampled rank)"
        )
    return OrthonormalizationResult(matrix=matrix, degenerate_rows=degenerate)
