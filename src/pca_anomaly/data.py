"""
Feature vectors, weighted samples and re-iterable data sources.

A training run makes two full passes over its data, so every source handed to
the trainer must be re-iterable: either an object whose ``__iter__`` returns
a fresh iterator each time, or a zero-argument callable returning one.
Rows that cannot be used (missing features, NaN values, invalid weight) are
yielded as bad samples; the projector skips and counts them.
"""

import logging
import math
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SparseVector:
    """Sparse feature vector; entries not listed in ``indices`` are zero."""

    length: int
    indices: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        indices = np.ascontiguousarray(self.indices, dtype=np.int64).ravel()
        values = np.ascontiguousarray(self.values, dtype=np.float64).ravel()
        if indices.shape != values.shape:
            raise ValueError("Sparse indices and values must have the same length")
        if self.length <= 0:
            raise ValueError("Sparse vector length must be positive")
        if indices.size:
            if indices.min() < 0 or indices.max() >= self.length:
                raise ValueError(f"Sparse indices out of range [0, {self.length})")
            if np.unique(indices).size != indices.size:
                raise ValueError("Sparse indices must be unique")
        object.__setattr__(self, "indices", indices)
        object.__setattr__(self, "values", values)

    def __len__(self):
        return self.length

    @classmethod
    def from_dense(cls, vector: np.ndarray) -> "SparseVector":
        vector = np.asarray(vector, dtype=np.float64).ravel()
        indices = np.flatnonzero(vector)
        return cls(vector.size, indices, vector[indices])

    def to_dense(self) -> np.ndarray:
        dense = np.zeros(self.length, dtype=np.float64)
        dense[self.indices] = self.values
        return dense

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.values)))


FeatureVector = np.ndarray | SparseVector


@dataclass(frozen=True)
class WeightedSample:
    """A feature row with its weight. ``features=None`` marks an unreadable row."""

    features: FeatureVector | None
    weight: float | None = 1.0

    def is_valid(self, dimension: int | None = None) -> bool:
        """True if the row can take part in accumulation."""
        if self.weight is None:
            return False
        try:
            weight = float(self.weight)
        except (TypeError, ValueError):
            return False
        if not math.isfinite(weight) or weight < 0:
            return False
        if self.features is None:
            return False
        if isinstance(self.features, SparseVector):
            if dimension is not None and self.features.length != dimension:
                return False
            return self.features.is_finite()
        features = np.asarray(self.features)
        if features.ndim != 1:
            return False
        if dimension is not None and features.shape[0] != dimension:
            return False
        return bool(np.all(np.isfinite(features)))


def feature_length(features: FeatureVector) -> int:
    if isinstance(features, SparseVector):
        return features.length
    return int(np.asarray(features).shape[0])


def open_cursor(source: Any) -> Iterator[WeightedSample]:
    """
    Start a new pass over a data source.

    Args:
        source: Re-iterable source or zero-argument callable returning an iterator

    Returns:
        Fresh iterator of WeightedSample
    """
    if callable(source) and not hasattr(source, "__iter__"):
        return iter(source())
    iterator = iter(source)
    if iterator is source:
        raise TypeError(
            "Data source must be re-iterable (training makes two passes); "
            "wrap one-shot iterators in a list or pass a callable returning a new iterator"
        )
    return iterator


def infer_dimension(source: Any) -> int:
    """Dimension of a source, from its ``dimension`` attribute or first good row."""
    dimension = getattr(source, "dimension", None)
    if dimension is not None:
        return int(dimension)
    for sample in open_cursor(source):
        if sample.is_valid():
            return feature_length(sample.features)
    raise ValueError("Could not infer the feature dimension: no valid rows in data source")


class ArrayDataSource:
    """
    Data source over a 2-D feature array (in RAM or ``numpy.memmap``).

    Rows containing NaN/inf and rows with a missing, NaN or negative weight are
    reported as bad samples.
    """

    def __init__(self, features: np.ndarray, weights: np.ndarray | None = None):
        if features.ndim != 2:
            raise ValueError(f"Features must be a 2-D array, got shape {features.shape}")
        if weights is not None:
            weights = np.asarray(weights, dtype=np.float64).ravel()
            if weights.shape[0] != features.shape[0]:
                raise ValueError("Weights must have one entry per row")
        self.features = features
        self.weights = weights

    @property
    def dimension(self) -> int:
        return int(self.features.shape[1])

    def __len__(self):
        return int(self.features.shape[0])

    def __iter__(self) -> Iterator[WeightedSample]:
        for i in range(self.features.shape[0]):
            weight = 1.0 if self.weights is None else self.weights[i]
            yield WeightedSample(np.asarray(self.features[i], dtype=np.float64), weight)

    def iter_chunks(self, chunk_size: int) -> Iterator[tuple[np.ndarray, np.ndarray, int]]:
        """
        Yield good rows in blocks.

        Returns:
            Iterator of (features_block, weights_block, skipped_in_block)
        """
        total = self.features.shape[0]
        for start in range(0, total, chunk_size):
            # Slicing a memmap only reads this block from disk
            block = np.asarray(self.features[start : start + chunk_size], dtype=np.float64)
            if self.weights is None:
                weights = np.ones(block.shape[0], dtype=np.float64)
            else:
                weights = self.weights[start : start + chunk_size]
            good = np.all(np.isfinite(block), axis=1)
            good &= np.isfinite(weights) & (weights >= 0)
            skipped = int(block.shape[0] - np.count_nonzero(good))
            if skipped:
                block = block[good]
                weights = weights[good]
            yield block, weights, skipped


class CsvDataSource:
    """
    Streams a delimited text file, one pass per iteration.

    Args:
        path: Text file with one row per line
        delimiter: Column separator
        weight_column: Index of the weight column (negative allowed), or None
        skip_header: Ignore the first line
    """

    def __init__(
        self,
        path: str | Path,
        delimiter: str = ",",
        weight_column: int | None = None,
        skip_header: bool = False,
    ):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Data file not found: {self.path}")
        self.delimiter = delimiter
        self.weight_column = weight_column
        self.skip_header = skip_header
        self._dimension = None

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            for sample in self:
                if sample.features is not None:
                    self._dimension = feature_length(sample.features)
                    break
            else:
                raise ValueError(f"No parseable rows in {self.path}")
        return self._dimension

    def __iter__(self) -> Iterator[WeightedSample]:
        with open(self.path, encoding="utf-8") as handle:
            for line_number, line in enumerate(handle):
                if line_number == 0 and self.skip_header:
                    continue
                line = line.strip()
                if not line:
                    continue
                yield self._parse_line(line)

    def _parse_line(self, line: str) -> WeightedSample:
        cells = [cell.strip() for cell in line.split(self.delimiter)]
        try:
            values = np.array([float(cell) if cell else math.nan for cell in cells])
        except ValueError:
            return WeightedSample(None, None)

        if self.weight_column is None:
            features, weight = values, 1.0
        else:
            if not -len(values) <= self.weight_column < len(values):
                return WeightedSample(None, None)
            weight = float(values[self.weight_column])
            features = np.delete(values, self.weight_column)
        if self._dimension is not None and features.shape[0] != self._dimension:
            return WeightedSample(None, weight)
        return WeightedSample(features, weight)


def as_data_source(data: Any, weights: np.ndarray | None = None) -> Any:
    """Wrap arrays and lists of rows so they can be passed to the trainer."""
    if isinstance(data, np.ndarray):
        if data.ndim == 1:
            data = data.reshape(1, -1)
        return ArrayDataSource(data, weights)
    if weights is not None:
        raise ValueError("Weights can only be given together with a feature array")
    if isinstance(data, (list, tuple)) and data:
        if isinstance(data[0], WeightedSample):
            return data
        if isinstance(data[0], SparseVector):
            return [WeightedSample(row) for row in data]
        return ArrayDataSource(np.asarray(data, dtype=np.float64))
    return data


def iter_samples(rows: Iterable[FeatureVector], weight: float = 1.0) -> Callable[[], Iterator[WeightedSample]]:
    """Turn a re-iterable collection of vectors into a cursor factory."""

    def cursor():
        for row in rows:
            yield WeightedSample(row, weight)

    return cursor
