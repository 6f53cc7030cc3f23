"""
Randomized PCA trainer for anomaly detection.

Trains an approximate PCA with the two-pass randomized SVD of Halko,
Martinsson and Tropp ("Finding structure with randomness", 2011):

1. Y = A Omega, with A the (never materialized) covariance matrix and Omega
   a Gaussian test matrix
2. Q = orthonormalized rows of Y
3. B = A Q, second pass over the data
4. Eigendecomposition of the small matrix B B^T
5. B rotated by the eigenvectors and scaled by the regularized pseudo-inverse
   of the eigenvalues; its first ``rank`` rows are the model eigenvectors

Notation follows http://web.stanford.edu/group/mmds/slides2010/Martinsson.pdf (p. 9).
"""

import logging
import time
import warnings
from collections.abc import Callable
from enum import Enum
from typing import Any

import numpy as np

from .config import PcaConfig, create_training_config
from .data import as_data_source, infer_dimension
from .eigen import EigenSolverFactory, gram_matrix
from .errors import InvalidConfigurationError, SkippedRowWarning
from .io_utils import check_training_memory
from .model import PcaModel
from .orthonormalize import orthonormalize_rows
from .postprocess import postprocess_subspace
from .projection import project_covariance
from .random_matrix import gaussian_matrix

logger = logging.getLogger(__name__)

# Seeds for runs without an explicit one are drawn from this generator
_PROCESS_RNG = np.random.default_rng()


def draw_process_seed() -> int:
    return int(_PROCESS_RNG.integers(0, 2**31 - 1))


class TrainingResult:
    """Result object of a training run."""

    def __init__(self, model: PcaModel, statistics: dict[str, Any]):
        self.model = model
        self.statistics = statistics

    def __repr__(self):
        return f"TrainingResult({self.model!r}, rows={self.statistics.get('rows')})"


class RandomizedPcaTrainer:
    """
    Trains a PcaModel with randomized SVD in exactly two passes over the data.

    Args:
        config: PcaConfig; keyword arguments build one when omitted
    """

    LOAD_NAME = "pcaAnomaly"
    SHORT_NAME = "pcaAnom"
    USER_NAME = "PCA Anomaly Detector"

    def __init__(self, config: PcaConfig | None = None, **kwargs):
        if config is None:
            config = create_training_config(**kwargs)
        elif kwargs:
            raise InvalidConfigurationError("Pass either a PcaConfig or keyword options, not both")
        config.validate()
        self.config = config
        self.seed = config.seed if config.seed is not None else draw_process_seed()
        self.eigen_solver = EigenSolverFactory.create_solver(config.eigen_solver)
        self._last_result = None

    def get_last_result(self) -> TrainingResult | None:
        """Get the result of the last training run."""
        return self._last_result

    def train(
        self,
        source: Any,
        dimension: int | None = None,
        progress: Callable[[int], None] | None = None,
    ) -> PcaModel:
        """
        Train on a re-iterable source of weighted rows.

        Args:
            source: Data source, feature array or list of rows
            dimension: Number of features; inferred from the source when None
            progress: Optional callback receiving row counts during each pass

        Returns:
            Trained PcaModel
        """
        start_time = time.perf_counter()
        config = self.config
        source = as_data_source(source)

        if dimension is None:
            dimension = infer_dimension(source)
        oversampled_rank = config.check_dimension(dimension)

        logger.info(
            f"Training randomized PCA: dimension={dimension}, rank={config.rank}, "
            f"oversampled rank={oversampled_rank}, center={config.center}, seed={self.seed}"
        )
        check_training_memory(dimension, oversampled_rank)

        omega = gaussian_matrix(oversampled_rank, dimension, self.seed)

        # Pass 1: Y = A * Omega, accumulating the mean
        first = project_covariance(
            source,
            omega,
            center=config.center,
            chunk_size=config.chunk_size,
            progress_interval=config.progress_interval,
            progress=progress,
        )
        if first.skipped_count > 0:
            warnings.warn(
                f"Skipped {first.skipped_count} instances with missing features/weights during training",
                SkippedRowWarning,
                stacklevel=2,
            )
        mean = first.mean

        # Orthonormalize Y in place; the buffer now holds Q
        ortho = orthonormalize_rows(first.projection)
        q = ortho.matrix
        del first

        # Pass 2: B = A * Q, written into Omega's buffer
        second = project_covariance(
            source,
            q,
            center=config.center,
            mean=mean,
            out=omega,
            chunk_size=config.chunk_size,
            progress_interval=config.progress_interval,
            progress=progress,
        )
        del omega, q
        b = second.projection

        b2 = gram_matrix(b)
        eigenvalues, eigenvectors = self.eigen_solver.decompose(b2)
        postprocess_subspace(b, eigenvalues, eigenvectors)

        model = PcaModel(config.rank, b, mean)
        elapsed = time.perf_counter() - start_time

        statistics = {
            "dimension": dimension,
            "rank": config.rank,
            "oversampled_rank": oversampled_rank,
            "seed": self.seed,
            "rows": second.row_count,
            "skipped_rows": second.skipped_count,
            "total_weight": second.total_weight,
            "degenerate_rows": ortho.degenerate_rows,
            "eigenvalues": eigenvalues,
            "eigen_solver": self.eigen_solver.name,
            "elapsed_seconds": elapsed,
        }
        self._last_result = TrainingResult(model, statistics)

        logger.info(
            f"Training completed in {elapsed:.2f}s over {second.row_count} rows "
            f"({second.skipped_count} skipped)"
        )
        return model


class TrainerType(Enum):
    """Registered trainers."""

    PCA_ANOMALY = RandomizedPcaTrainer.LOAD_NAME


class TrainerFactory:
    """Factory class for creating trainers by name."""

    _trainers = {
        TrainerType.PCA_ANOMALY: RandomizedPcaTrainer,
    }

    _aliases = {
        RandomizedPcaTrainer.LOAD_NAME.lower(): TrainerType.PCA_ANOMALY,
        RandomizedPcaTrainer.SHORT_NAME.lower(): TrainerType.PCA_ANOMALY,
        RandomizedPcaTrainer.USER_NAME.lower(): TrainerType.PCA_ANOMALY,
    }

    @classmethod
    def create_trainer(cls, trainer_type: TrainerType | str, **kwargs) -> RandomizedPcaTrainer:
        """Create a trainer instance by type or by any of its registered names."""
        if isinstance(trainer_type, str):
            key = trainer_type.lower()
            if key not in cls._aliases:
                raise InvalidConfigurationError(
                    f"Unknown trainer '{trainer_type}'. Available: {sorted(cls.get_available_names())}"
                )
            trainer_type = cls._aliases[key]

        if trainer_type not in cls._trainers:
            raise InvalidConfigurationError(f"Unknown trainer type: {trainer_type}")

        return cls._trainers[trainer_type](**kwargs)

    @classmethod
    def get_available_trainers(cls) -> list[TrainerType]:
        return list(cls._trainers.keys())

    @classmethod
    def get_available_names(cls) -> list[str]:
        trainer = RandomizedPcaTrainer
        return [trainer.LOAD_NAME, trainer.SHORT_NAME, trainer.USER_NAME]


def train_pca_anomaly(data: Any, weights: np.ndarray | None = None, **kwargs) -> PcaModel:
    """
    Quick training helper.

    Args:
        data: Feature array, list of rows or re-iterable data source
        weights: Optional per-row weights (feature arrays only)
        **kwargs: Training options (rank, oversampling, center, seed, ...)

    Returns:
        Trained PcaModel
    """
    trainer = RandomizedPcaTrainer(**kwargs)
    return trainer.train(as_data_source(data, weights))
