"""
Trained PCA anomaly model: scoring, binary persistence and text summary.

Binary format (little-endian):

    bytes[8]  signature "PCA ANOM"
    uint32    format version
    int32     dimension (number of features)
    int32     rank
    bool      center (one byte)
    if center:
        float32[dimension]   mean vector
    float32[dimension] * rank  eigenvectors
"""

import io
import logging
import struct
from pathlib import Path
from typing import TextIO

import numpy as np

from .data import SparseVector
from .errors import DecodeError, DimensionMismatchError
from .scoring import anomaly_score, anomaly_scores

logger = logging.getLogger(__name__)

MODEL_SIGNATURE = b"PCA ANOM"
MODEL_VERSION = 0x00010001

_HEADER = struct.Struct("<8sI")
_LAYOUT = struct.Struct("<iiB")
_FLOAT = np.dtype("<f4")


class PcaModel:
    """
    Anomaly detector built from the top eigenvectors of the training covariance.

    The eigenvectors approximate the subspace holding the normal data. For a
    new instance the score is the normalized norm of the difference between the
    centered vector and its projection on that subspace; a score close to 0
    means the instance is normal.

    Args:
        rank: Number of eigenvectors kept (the first ``rank`` rows are used)
        eigenvectors: (>= rank x dimension) array of scaled eigenvectors
        mean: Training mean, or None if the model was trained without centering
    """

    def __init__(self, rank: int, eigenvectors: np.ndarray, mean: np.ndarray | None = None):
        eigenvectors = np.asarray(eigenvectors)
        if eigenvectors.ndim != 2 or eigenvectors.shape[1] == 0:
            raise ValueError(f"Eigenvectors must be a 2-D array, got shape {eigenvectors.shape}")
        if not 0 < rank <= eigenvectors.shape[0]:
            raise ValueError(f"Rank {rank} out of range for {eigenvectors.shape[0]} eigenvectors")

        self._dimension = int(eigenvectors.shape[1])
        self._rank = int(rank)
        self._eigenvectors = np.array(eigenvectors[:rank], dtype=np.float32)
        self._eigenvectors.setflags(write=False)

        if mean is not None:
            mean = np.array(mean, dtype=np.float32).ravel()
            if mean.shape[0] != self._dimension:
                raise DimensionMismatchError(
                    f"Mean has length {mean.shape[0]}, eigenvectors have length {self._dimension}"
                )
            mean.setflags(write=False)
        self._mean = mean

        # float64 working copies for scoring; float32 values are exact in float64
        self._eigenvectors64 = self._eigenvectors.astype(np.float64)
        if mean is None:
            self._mean64 = np.zeros(self._dimension, dtype=np.float64)
        else:
            self._mean64 = mean.astype(np.float64)
        self._mean_projected = self._eigenvectors64 @ self._mean64
        self._norm2_mean = float(self._mean64 @ self._mean64)
        for array in (self._eigenvectors64, self._mean64, self._mean_projected):
            array.setflags(write=False)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def center(self) -> bool:
        return self._mean is not None

    @property
    def mean(self) -> np.ndarray | None:
        return self._mean

    @property
    def eigenvectors(self) -> np.ndarray:
        return self._eigenvectors

    @property
    def mean_projected(self) -> np.ndarray:
        return self._mean_projected

    def __repr__(self):
        return f"PcaModel(dimension={self._dimension}, rank={self._rank}, center={self.center})"

    # --- Scoring ---

    def score(self, x: np.ndarray | SparseVector) -> float:
        """Anomaly score of one dense or sparse vector."""
        return anomaly_score(
            x, self._mean64, self._eigenvectors64, self._mean_projected, self._norm2_mean
        )

    def score_batch(self, features: np.ndarray) -> np.ndarray:
        """Anomaly scores of a (m x dimension) array of rows."""
        return anomaly_scores(
            features, self._mean64, self._eigenvectors64, self._mean_projected, self._norm2_mean
        )

    # --- Accessors ---

    def get_eigenvectors(self) -> np.ndarray:
        """Copy of the top eigenvectors of the training covariance matrix."""
        return self._eigenvectors.copy()

    def get_mean(self) -> np.ndarray:
        """Copy of the training mean (zeros when not centered)."""
        if self._mean is None:
            return np.zeros(self._dimension, dtype=np.float32)
        return self._mean.copy()

    def get_summary(self) -> list[tuple[str, np.ndarray]]:
        """Named vectors: EigenVector0..EigenVector{rank-1}, then MeanVector."""
        rows = [(f"EigenVector{i}", self._eigenvectors[i].copy()) for i in range(self._rank)]
        rows.append(("MeanVector", self.get_mean()))
        return rows

    # --- Persistence ---

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        buffer.write(_HEADER.pack(MODEL_SIGNATURE, MODEL_VERSION))
        buffer.write(_LAYOUT.pack(self._dimension, self._rank, 1 if self.center else 0))
        if self.center:
            buffer.write(self._mean.astype(_FLOAT).tobytes())
        buffer.write(self._eigenvectors.astype(_FLOAT).tobytes())
        return buffer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "PcaModel":
        """
        Decode a model written by ``to_bytes``.

        Raises:
            DecodeError: wrong signature or version, inconsistent sizes,
                truncated or trailing bytes, or non-finite values
        """
        data = memoryview(data)
        if len(data) < _HEADER.size + _LAYOUT.size:
            raise DecodeError(f"Model data too short ({len(data)} bytes)")

        signature, version = _HEADER.unpack_from(data, 0)
        if signature != MODEL_SIGNATURE:
            raise DecodeError(f"Not a PCA anomaly model (signature {signature!r})")
        if version != MODEL_VERSION:
            raise DecodeError(f"Unsupported model version 0x{version:08X}")

        dimension, rank, center_byte = _LAYOUT.unpack_from(data, _HEADER.size)
        if dimension <= 0:
            raise DecodeError(f"Invalid dimension {dimension}")
        if rank <= 0 or rank > dimension:
            raise DecodeError(f"Invalid rank {rank} for dimension {dimension}")
        if center_byte not in (0, 1):
            raise DecodeError(f"Invalid center flag {center_byte}")
        center = center_byte == 1

        offset = _HEADER.size + _LAYOUT.size
        num_vectors = rank + (1 if center else 0)
        expected = offset + num_vectors * dimension * _FLOAT.itemsize
        if len(data) != expected:
            raise DecodeError(f"Model data has {len(data)} bytes, expected {expected}")

        values = np.frombuffer(data, dtype=_FLOAT, count=num_vectors * dimension, offset=offset)
        values = values.astype(np.float32).reshape(num_vectors, dimension)
        if not np.all(np.isfinite(values)):
            raise DecodeError("Model contains non-finite values")

        mean = values[0] if center else None
        eigenvectors = values[1:] if center else values
        return cls(rank, eigenvectors, mean)

    def save(self, filepath: str | Path):
        """Save the model in binary format."""
        path = Path(filepath)
        path.write_bytes(self.to_bytes())
        logger.info(f"Saved model ({self._dimension} features, rank {self._rank}) to {path}")

    @classmethod
    def load(cls, filepath: str | Path) -> "PcaModel":
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Model not found: {filepath}")
        return cls.from_bytes(path.read_bytes())

    # --- Text summary ---

    def save_text(self, writer: TextIO):
        """Write a human-readable summary; eigenvectors as sparse index:value pairs."""
        writer.write(f"Dimension: {self._dimension}\n")
        writer.write(f"Rank: {self._rank}\n")

        if self.center:
            writer.write("Mean vector:")
            for value in self._mean:
                writer.write(f" {value}")
            writer.write("\n")
            writer.write("Projected mean vector:")
            for value in self._mean_projected.astype(np.float32):
                writer.write(f" {value}")

        writer.write("\n")
        writer.write("# V\n")
        for i in range(self._rank):
            for index in np.flatnonzero(self._eigenvectors[i]):
                writer.write(f" {index}:{self._eigenvectors[i, index]}")
            writer.write("\n")

    def summary_text(self) -> str:
        buffer = io.StringIO()
        self.save_text(buffer)
        return buffer.getvalue()
