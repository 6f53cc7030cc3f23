"""
Seeded Gaussian test matrices for the randomized range finder.
"""

import logging

import numpy as np

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


def gaussian_matrix(rows: int, dimension: int, seed: int) -> np.ndarray:
    """
    Draw a (rows x dimension) matrix of i.i.d. standard normal entries.

    Rows are generated one at a time straight into the output buffer, so no
    temporary copy of the matrix is ever allocated. The same seed always gives
    the same matrix.

    Args:
        rows: Number of random directions (the oversampled rank)
        dimension: Length of each direction
        seed: Seed of the pseudo-random generator

    Returns:
        float64 array of shape (rows, dimension)
    """
    if rows <= 0 or dimension <= 0:
        raise InvalidConfigurationError(
            f"Gaussian matrix shape must be positive, got ({rows}, {dimension})"
        )

    rng = np.random.default_rng(seed)
    omega = np.empty((rows, dimension), dtype=np.float64)
    # TODO: draw the whole matrix with one standard_normal call when it fits
    # comfortably in memory; row-wise filling is slower for small dimensions.
    for i in range(rows):
        rng.standard_normal(out=omega[i])

    logger.debug(f"Generated {rows}x{dimension} Gaussian matrix (seed={seed})")
    return omega
