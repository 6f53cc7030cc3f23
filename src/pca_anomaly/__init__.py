"""
pypca-anomaly - PCA anomaly detection trained with randomized SVD

Learns the dominant subspace of the training covariance matrix in two
streaming passes over weighted rows and scores new vectors by their
normalized reconstruction error against that subspace.
"""

__version__ = "0.1.0"

# Training
from .config import PcaConfig as PcaConfig
from .config import create_training_config as create_training_config
from .trainer import RandomizedPcaTrainer as RandomizedPcaTrainer
from .trainer import TrainerFactory as TrainerFactory
from .trainer import TrainerType as TrainerType
from .trainer import TrainingResult as TrainingResult
from .trainer import train_pca_anomaly as train_pca_anomaly

# Model
from .model import PcaModel as PcaModel

# Data
from .data import ArrayDataSource as ArrayDataSource
from .data import CsvDataSource as CsvDataSource
from .data import SparseVector as SparseVector
from .data import WeightedSample as WeightedSample

# Numerical building blocks
from .eigen import EigenSolverFactory as EigenSolverFactory
from .eigen import EigenSolverType as EigenSolverType
from .orthonormalize import orthonormalize_rows as orthonormalize_rows
from .postprocess import postprocess_subspace as postprocess_subspace
from .projection import project_covariance as project_covariance
from .random_matrix import gaussian_matrix as gaussian_matrix
from .scoring import anomaly_score as anomaly_score

# Errors
from .errors import DecodeError as DecodeError
from .errors import DimensionMismatchError as DimensionMismatchError
from .errors import EmptyDataError as EmptyDataError
from .errors import InvalidConfigurationError as InvalidConfigurationError
from .errors import PcaError as PcaError
from .errors import SkippedRowWarning as SkippedRowWarning


def list_available_eigen_solvers():
    """Returns a list of available eigensolver names."""
    return [solver.value for solver in EigenSolverFactory.get_available_solvers()]


def list_available_trainers():
    """Returns the names a trainer can be created with."""
    return TrainerFactory.get_available_names()


def get_package_info():
    """Get information about the package."""
    return {
        "version": __version__,
        "algorithm": "Randomized SVD (two passes)",
        "eigen_solvers": list_available_eigen_solvers(),
        "trainers": list_available_trainers(),
    }


def load_model(filepath):
    """Load a PcaModel saved with PcaModel.save."""
    return PcaModel.load(filepath)


__all__ = [
    # Training
    "PcaConfig",
    "create_training_config",
    "RandomizedPcaTrainer",
    "TrainerFactory",
    "TrainerType",
    "TrainingResult",
    "train_pca_anomaly",
    # Model
    "PcaModel",
    "load_model",
    # Data
    "ArrayDataSource",
    "CsvDataSource",
    "SparseVector",
    "WeightedSample",
    # Numerical building blocks
    "EigenSolverFactory",
    "EigenSolverType",
    "orthonormalize_rows",
    "postprocess_subspace",
    "project_covariance",
    "gaussian_matrix",
    "anomaly_score",
    # Errors
    "PcaError",
    "InvalidConfigurationError",
    "EmptyDataError",
    "DecodeError",
    "DimensionMismatchError",
    "SkippedRowWarning",
    # Utilities
    "list_available_eigen_solvers",
    "list_available_trainers",
    "get_package_info",
]
