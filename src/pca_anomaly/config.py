"""
Training configuration for the randomized PCA anomaly detector.
"""

from dataclasses import asdict, dataclass, fields
from numbers import Integral
from typing import Any

from .errors import InvalidConfigurationError


@dataclass
class PcaConfig:
    """
    Options recognized by RandomizedPcaTrainer.

    Attributes:
        rank: Number of principal components kept in the model
        oversampling: Extra random directions used during training
        center: Subtract the (weighted) mean before projecting
        seed: Seed of the Gaussian test matrix; None draws one per process
        eigen_solver: Name of the small symmetric eigensolver backend
        chunk_size: Dense rows accumulated per BLAS block
        progress_interval: Rows between progress reports during a pass
    """

    rank: int = 20
    oversampling: int = 20
    center: bool = True
    seed: int | None = None
    eigen_solver: str = "numpy"
    chunk_size: int = 4096
    progress_interval: int = 100_000

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check the options that do not depend on the data."""
        if isinstance(self.rank, bool) or not isinstance(self.rank, Integral):
            raise InvalidConfigurationError(f"Rank must be an integer, got {self.rank!r}")
        if self.rank <= 0:
            raise InvalidConfigurationError(f"Rank must be positive, got {self.rank}")
        if isinstance(self.oversampling, bool) or not isinstance(self.oversampling, Integral):
            raise InvalidConfigurationError(
                f"Oversampling must be an integer, got {self.oversampling!r}"
            )
        if self.oversampling < 0:
            raise InvalidConfigurationError(
                f"Oversampling must be non-negative, got {self.oversampling}"
            )
        if self.chunk_size <= 0:
            raise InvalidConfigurationError("Chunk size must be positive")
        if self.progress_interval <= 0:
            raise InvalidConfigurationError("Progress interval must be positive")

    def check_dimension(self, dimension: int) -> int:
        """
        Validate the rank against the data dimension.

        Args:
            dimension: Number of features of the training data

        Returns:
            The oversampled rank, min(rank + oversampling, dimension)
        """
        if dimension <= 0:
            raise InvalidConfigurationError(f"Dimension must be positive, got {dimension}")
        if self.rank > dimension:
            raise InvalidConfigurationError(
                f"Rank ({self.rank}) cannot be larger than the original dimension ({dimension})"
            )
        return self.oversampled_rank(dimension)

    def oversampled_rank(self, dimension: int) -> int:
        return min(self.rank + self.oversampling, dimension)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def create_training_config(**kwargs) -> PcaConfig:
    """
    Create a validated training configuration.

    Args:
        **kwargs: Any PcaConfig field (rank, oversampling, center, seed, ...)

    Returns:
        PcaConfig instance
    """
    known = {f.name for f in fields(PcaConfig)}
    unknown = sorted(set(kwargs) - known)
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown training option(s): {unknown}. Available: {sorted(known)}"
        )
    return PcaConfig(**kwargs)
