"""
Exception and warning types raised by the PCA anomaly detector.
"""


class PcaError(Exception):
    """Base class for all errors raised by pca_anomaly."""


class InvalidConfigurationError(PcaError, ValueError):
    """Training options are inconsistent (rank, oversampling, dimension...)."""


class EmptyDataError(PcaError):
    """A pass over the data ended with a non-positive total weight."""


class DecodeError(PcaError, ValueError):
    """Serialized model bytes are malformed or contain non-finite values."""


class DimensionMismatchError(PcaError, ValueError):
    """A vector does not have the length the model or basis expects."""


class SkippedRowWarning(UserWarning):
    """Rows with missing features or weights were skipped during a pass."""
