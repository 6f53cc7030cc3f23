"""
Numba-compiled kernels for sparse rows.

Sparse rows are accumulated without densifying them: only the columns listed
in ``indices`` are read from the basis and written to the projection.
"""
import numpy as np
from numba import njit


@njit(cache=True)
def accumulate_sparse_row(indices, values, weight, basis, projection):
    """
    projection[i] += weight * (basis[i] . v) * v  for every basis row i,
    where v is the sparse row (indices, values).
    """
    num_rows = basis.shape[0]
    nnz = indices.shape[0]

    for i in range(num_rows):
        dot = 0.0
        for t in range(nnz):
            dot += basis[i, indices[t]] * values[t]

        scale = weight * dot
        if scale != 0.0:
            for t in range(nnz):
                projection[i, indices[t]] += scale * values[t]


@njit(cache=True)
def sparse_matvec(matrix, indices, values):
    """matrix @ v for a sparse vector v, touching only its nonzero columns."""
    num_rows = matrix.shape[0]
    nnz = indices.shape[0]
    result = np.zeros(num_rows, dtype=np.float64)

    for i in range(num_rows):
        acc = 0.0
        for t in range(nnz):
            acc += matrix[i, indices[t]] * values[t]
        result[i] = acc

    return result
