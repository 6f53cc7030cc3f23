"""
Anomaly score: normalized reconstruction error against the learned subspace.
"""

import math

import numpy as np

from .data import SparseVector
from .errors import DimensionMismatchError
from .numba_utils import sparse_matvec


def anomaly_score(
    x: np.ndarray | SparseVector,
    mean: np.ndarray,
    eigenvectors: np.ndarray,
    mean_projected: np.ndarray,
    norm2_mean: float,
) -> float:
    """
    Score one query vector.

    norm2X = |x|^2 - 2 mean.x + |mean|^2 is the squared distance to the mean
    and norm2U the squared norm of the centered projection onto the (scaled)
    eigenvectors. The score is sqrt((norm2X - norm2U) / norm2X): close to 0
    near the learned subspace and close to 1 far away from it.

    A query equal to the mean (norm2X == 0) scores 0, and a negative residual
    is clamped to 0, so the result is always finite and non-negative.

    Args:
        x: Dense vector or SparseVector of length dimension
        mean: Dense mean (all zeros when the model is not centered)
        eigenvectors: (rank x dimension) scaled eigenvectors
        mean_projected: eigenvectors @ mean
        norm2_mean: |mean|^2

    Returns:
        Anomaly score
    """
    dimension = eigenvectors.shape[1]

    if isinstance(x, SparseVector):
        if x.length != dimension:
            raise DimensionMismatchError(f"Query has length {x.length}, model dimension is {dimension}")
        norm2_x = float(x.values @ x.values)
        mean_dot = float(mean[x.indices] @ x.values)
        projected = sparse_matvec(eigenvectors, x.indices, x.values)
    else:
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (dimension,):
            raise DimensionMismatchError(f"Query has shape {x.shape}, model dimension is {dimension}")
        norm2_x = float(x @ x)
        mean_dot = float(mean @ x)
        projected = eigenvectors @ x

    norm2_x = norm2_x - 2.0 * mean_dot + norm2_mean
    # Round-off can make the expanded distance slightly negative when x ~ mean
    if norm2_x < 0:
        norm2_x = 0.0

    components = projected - mean_projected
    norm2_u = float(components @ components)

    if norm2_x == 0.0:
        return 0.0
    residual = norm2_x - norm2_u
    if residual < 0:
        residual = 0.0
    return math.sqrt(residual / norm2_x)


def anomaly_scores(
    features: np.ndarray,
    mean: np.ndarray,
    eigenvectors: np.ndarray,
    mean_projected: np.ndarray,
    norm2_mean: float,
) -> np.ndarray:
    """Vectorized anomaly_score for a (m x dimension) block of dense rows."""
    features = np.asarray(features, dtype=np.float64)
    if features.ndim != 2 or features.shape[1] != eigenvectors.shape[1]:
        raise DimensionMismatchError(
            f"Queries have shape {features.shape}, model dimension is {eigenvectors.shape[1]}"
        )

    norm2_x = np.einsum("ij,ij->i", features, features) - 2.0 * (features @ mean) + norm2_mean
    np.maximum(norm2_x, 0.0, out=norm2_x)

    components = features @ eigenvectors.T - mean_projected
    norm2_u = np.einsum("ij,ij->i", components, components)

    residual = np.maximum(norm2_x - norm2_u, 0.0)
    scores = np.zeros(features.shape[0], dtype=np.float64)
    nonzero = norm2_x > 0
    scores[nonzero] = np.sqrt(residual[nonzero] / norm2_x[nonzero])
    return scores
