"""
Streaming projection of the covariance matrix onto a basis.

Computes Y = (X - mean)^T (X - mean) B^T / n in a single pass over weighted
rows, without ever forming X or the covariance matrix.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np

from .data import SparseVector, open_cursor
from .errors import DimensionMismatchError, EmptyDataError
from .numba_utils import accumulate_sparse_row

logger = logging.getLogger(__name__)


@dataclass
class ProjectionResult:
    """Output of one pass. ``mean`` is None when centering is disabled."""

    projection: np.ndarray
    mean: np.ndarray | None
    total_weight: float
    row_count: int
    skipped_count: int


class StreamingProjection:
    """
    Accumulates the covariance projection incrementally.

    The projection is accumulated against raw (uncentered) rows and corrected
    once in ``finalize``: Y[i] -= (b_i . mean) mean. This avoids computing
    v - mean for every row and every basis vector.

    Args:
        basis: (k x d) basis matrix, rows are basis vectors
        center: Whether the covariance is centered
        mean: Fixed mean to center with. If None and center is True, the
            weighted mean is accumulated during the pass
        out: Optional (k x d) float64 buffer that receives the projection
    """

    def __init__(
        self,
        basis: np.ndarray,
        center: bool = True,
        mean: np.ndarray | None = None,
        out: np.ndarray | None = None,
    ):
        if basis.ndim != 2 or basis.shape[0] == 0:
            raise ValueError(f"Basis must be a non-empty 2-D array, got shape {basis.shape}")
        self.basis = np.ascontiguousarray(basis, dtype=np.float64)
        self.dimension = int(basis.shape[1])
        self.center = center

        if out is None:
            out = np.zeros(basis.shape, dtype=np.float64)
        else:
            if out.shape != basis.shape or out.dtype != np.float64 or not out.flags.c_contiguous:
                raise ValueError("Output buffer must be contiguous float64 with the basis shape")
            if np.shares_memory(out, self.basis):
                raise ValueError("Output buffer must not alias the basis")
            out.fill(0.0)
        self.projection = out

        self.accumulate_mean = center and mean is None
        if center and mean is not None:
            mean = np.asarray(mean, dtype=np.float64)
            if mean.shape != (self.dimension,):
                raise DimensionMismatchError(
                    f"Mean has length {mean.shape[0]}, basis dimension is {self.dimension}"
                )
        self.mean = mean if center else None
        self.sum_x = np.zeros(self.dimension, dtype=np.float64) if self.accumulate_mean else None

        self.total_weight = 0.0
        self.count = 0
        self.skipped = 0

    def update(self, chunk: np.ndarray, weights: np.ndarray):
        """
        Accumulate a block of good dense rows.

        Args:
            chunk: Array of shape (N, dimension)
            weights: Array of shape (N,)
        """
        if chunk.shape[0] == 0:
            return
        if chunk.shape[1] != self.dimension:
            raise DimensionMismatchError(
                f"Rows have {chunk.shape[1]} features, basis dimension is {self.dimension}"
            )
        chunk_f64 = np.asarray(chunk, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)

        # P[r, i] = b_i . v_r, then Y[i] += sum_r w_r P[r, i] v_r
        dots = chunk_f64 @ self.basis.T
        dots *= weights[:, None]
        self.projection += dots.T @ chunk_f64

        if self.accumulate_mean:
            self.sum_x += weights @ chunk_f64

        self.total_weight += float(weights.sum())
        self.count += chunk_f64.shape[0]

    def update_sparse(self, row: SparseVector, weight: float):
        """Accumulate one good sparse row in place."""
        if row.length != self.dimension:
            raise DimensionMismatchError(
                f"Row has {row.length} features, basis dimension is {self.dimension}"
            )
        accumulate_sparse_row(row.indices, row.values, float(weight), self.basis, self.projection)
        if self.accumulate_mean:
            self.sum_x[row.indices] += weight * row.values
        self.total_weight += float(weight)
        self.count += 1

    def finalize(self) -> ProjectionResult:
        """
        Normalize by the total weight and apply the centering correction.

        Returns:
            ProjectionResult
        """
        if not self.total_weight > 0:
            raise EmptyDataError(
                f"Empty training data: total weight {self.total_weight} over {self.count} rows "
                f"({self.skipped} skipped)"
            )
        inv_n = 1.0 / self.total_weight
        self.projection *= inv_n

        if self.accumulate_mean:
            self.mean = self.sum_x * inv_n
            self.sum_x = None

        if self.center:
            mean_dots = self.basis @ self.mean
            self.projection -= np.outer(mean_dots, self.mean)

        return ProjectionResult(
            projection=self.projection,
            mean=self.mean,
            total_weight=self.total_weight,
            row_count=self.count,
            skipped_count=self.skipped,
        )


def project_covariance(
    source: Any,
    basis: np.ndarray,
    center: bool = True,
    mean: np.ndarray | None = None,
    out: np.ndarray | None = None,
    chunk_size: int = 4096,
    progress_interval: int = 100_000,
    progress: Callable[[int], None] | None = None,
) -> ProjectionResult:
    """
    Run one streaming pass computing the covariance projection onto ``basis``.

    Args:
        source: Re-iterable data source (see pca_anomaly.data)
        basis: (k x d) basis matrix
        center: Center the covariance
        mean: Fixed mean (second pass); None accumulates it (first pass)
        out: Optional buffer receiving the projection
        chunk_size: Dense rows per BLAS block
        progress_interval: Rows between progress reports
        progress: Optional callback receiving the running row count

    Returns:
        ProjectionResult
    """
    streamer = StreamingProjection(basis, center=center, mean=mean, out=out)
    next_report = progress_interval

    def report():
        nonlocal next_report
        if streamer.count >= next_report:
            logger.info(f"Projected {streamer.count} rows...")
            if progress is not None:
                progress(streamer.count)
            next_report = (streamer.count // progress_interval + 1) * progress_interval

    if hasattr(source, "iter_chunks"):
        for block, weights, skipped in source.iter_chunks(chunk_size):
            streamer.skipped += skipped
            streamer.update(block, weights)
            report()
    else:
        buffer = np.empty((chunk_size, streamer.dimension), dtype=np.float64)
        buffer_weights = np.empty(chunk_size, dtype=np.float64)
        filled = 0

        for sample in open_cursor(source):
            if not sample.is_valid(streamer.dimension):
                streamer.skipped += 1
                continue
            if isinstance(sample.features, SparseVector):
                streamer.update_sparse(sample.features, float(sample.weight))
            else:
                buffer[filled] = sample.features
                buffer_weights[filled] = float(sample.weight)
                filled += 1
                if filled == chunk_size:
                    streamer.update(buffer, buffer_weights)
                    filled = 0
            report()

        if filled:
            streamer.update(buffer[:filled], buffer_weights[:filled])

    if progress is not None:
        progress(streamer.count)
    logger.debug(
        f"Projection pass done: {streamer.count} rows, {streamer.skipped} skipped, "
        f"total weight {streamer.total_weight:.6g}"
    )
    return streamer.finalize()
