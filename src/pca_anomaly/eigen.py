"""
Dense symmetric eigensolvers for the small (k x k) Gram matrix.

Every backend returns eigenvalues sorted in descending order and the matching
eigenvectors as columns, so column j always pairs with eigenvalue j when the
post-processing step builds the pseudo-inverse.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

import numpy as np
import scipy.linalg

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


class EigenSolverType(Enum):
    """Available eigensolver backends."""

    NUMPY = "numpy"
    SCIPY = "scipy"


class EigenSolver(ABC):
    """Abstract base class for symmetric eigensolvers."""

    def __init__(self, name: str):
        self.name = name

    def decompose(self, matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Eigendecomposition of a symmetric matrix.

        Args:
            matrix: Symmetric (k x k) array

        Returns:
            (eigenvalues, eigenvectors): eigenvalues descending, eigenvectors
            as the columns of a (k x k) orthonormal matrix
        """
        self._validate_matrix(matrix)
        eigenvalues, eigenvectors = self._eigh(np.asarray(matrix, dtype=np.float64))
        idx = np.argsort(eigenvalues)[::-1]
        eigenvalues = eigenvalues[idx]
        eigenvectors = eigenvectors[:, idx]
        # A Gram matrix is positive semi-definite; negative values are round-off
        eigenvalues[eigenvalues < 0] = 0.0
        return eigenvalues, eigenvectors

    @abstractmethod
    def _eigh(self, matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        pass

    @staticmethod
    def _validate_matrix(matrix: np.ndarray) -> None:
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Matrix must be square, got shape {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise ValueError("Matrix contains non-finite values")


class NumpyEigenSolver(EigenSolver):
    """LAPACK syevd through numpy.linalg.eigh."""

    def __init__(self):
        super().__init__("numpy")

    def _eigh(self, matrix):
        return np.linalg.eigh(matrix)


class ScipyEigenSolver(EigenSolver):
    """scipy.linalg.eigh, symmetric driver chosen by scipy."""

    def __init__(self):
        super().__init__("scipy")

    def _eigh(self, matrix):
        return scipy.linalg.eigh(matrix, check_finite=False)


class EigenSolverFactory:
    """Factory class for creating eigensolver instances."""

    _solvers = {
        EigenSolverType.NUMPY: NumpyEigenSolver,
        EigenSolverType.SCIPY: ScipyEigenSolver,
    }

    @classmethod
    def create_solver(cls, solver_type: EigenSolverType | str) -> EigenSolver:
        """Create a solver instance by type or name."""
        if isinstance(solver_type, str):
            try:
                solver_type = EigenSolverType(solver_type.lower())
            except ValueError:
                raise InvalidConfigurationError(
                    f"Unknown eigensolver '{solver_type}'. "
                    f"Available: {[t.value for t in cls._solvers]}"
                ) from None
        if solver_type not in cls._solvers:
            raise InvalidConfigurationError(f"Unknown eigensolver: {solver_type}")

        return cls._solvers[solver_type]()

    @classmethod
    def get_available_solvers(cls) -> list[EigenSolverType]:
        """Get list of available solver types."""
        return list(cls._solvers.keys())


def symmetric_eigh(matrix: np.ndarray, solver: EigenSolverType | str = "numpy") -> tuple[np.ndarray, np.ndarray]:
    """Shortcut for EigenSolverFactory.create_solver(solver).decompose(matrix)."""
    return EigenSolverFactory.create_solver(solver).decompose(matrix)


def gram_matrix(rows: np.ndarray) -> np.ndarray:
    """B2 = B B^T for a (k x d) matrix of rows, symmetrized exactly."""
    b2 = rows @ rows.T
    return (b2 + b2.T) * 0.5
