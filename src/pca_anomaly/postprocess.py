"""
Turn the refined projection B and the eigenpairs of B B^T into the scaled
approximate eigenvectors of the covariance matrix.
"""

import numpy as np

# Additive regularization of the pseudo-inverse; guards near-zero eigenvalues
PINV_REGULARIZATION = 1e-6


def regularized_pinv(eigenvalues: np.ndarray) -> np.ndarray:
    return 1.0 / (PINV_REGULARIZATION + np.asarray(eigenvalues, dtype=np.float64))


def postprocess_subspace(
    b: np.ndarray,
    eigenvalues: np.ndarray,
    eigenvectors: np.ndarray,
    block_size: int = 8192,
) -> np.ndarray:
    """
    Modify ``b`` in place so that it becomes diag(pinv) Z^T b.

    For every coordinate c: tmp[j] = sum_l b[l, c] * Z[l, j], then
    b[j, c] = pinv[j] * tmp[j], with pinv[j] = 1 / (1e-6 + sigma[j]).
    Coordinates are processed in blocks so the scratch stays (k x block_size).

    Args:
        b: (k x d) refined projection, overwritten
        eigenvalues: k eigenvalues of b b^T, descending
        eigenvectors: (k x k) matrix, column j pairs with eigenvalues[j]
        block_size: Coordinates per block

    Returns:
        b (same buffer)
    """
    k, d = b.shape
    if eigenvalues.shape != (k,) or eigenvectors.shape != (k, k):
        raise ValueError(
            f"Eigenpairs of shape {eigenvalues.shape}/{eigenvectors.shape} "
            f"do not match a basis of {k} rows"
        )

    pinv = regularized_pinv(eigenvalues)
    rotation = pinv[:, None] * eigenvectors.T

    for start in range(0, d, block_size):
        block = b[:, start : start + block_size]
        block[...] = rotation @ block

    return b
