
import logging
from pathlib import Path

import numpy as np
import psutil

from .data import ArrayDataSource, CsvDataSource

logger = logging.getLogger(__name__)

# Use at most this fraction of AVAILABLE memory before switching to a memmap
MEMORY_FRACTION = 0.5


def get_available_memory_mb():
    return psutil.virtual_memory().available / (1024 * 1024)


def estimate_training_memory_mb(dimension: int, oversampled_rank: int) -> float:
    """Size of the two (oversampled_rank x dimension) float64 scratch matrices."""
    return 2.0 * dimension * oversampled_rank * 8 / (1024 * 1024)


def check_training_memory(dimension: int, oversampled_rank: int) -> float:
    """
    Log the scratch memory a training run will need.

    Returns:
        Estimated memory usage in MB
    """
    estimate_mb = estimate_training_memory_mb(dimension, oversampled_rank)
    available_mb = get_available_memory_mb()
    threshold_mb = available_mb * MEMORY_FRACTION

    logger.info(f"Estimated training memory: {estimate_mb:.2f} MB (available: {available_mb:.2f} MB)")
    if estimate_mb > threshold_mb:
        logger.warning(
            f"Training needs ~{estimate_mb:.0f} MB, more than {MEMORY_FRACTION:.0%} of available memory. "
            "If running out of memory, reduce rank and oversampling."
        )
    elif estimate_mb > 2048:
        logger.info("If running out of memory, reduce rank and oversampling.")
    return estimate_mb


def smart_load_array(file_path: str | Path) -> np.ndarray:
    """
    Load a .npy feature matrix, automatically choosing between RAM and a
    read-only memory map based on available system memory.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    size_mb = path.stat().st_size / (1024 * 1024)
    available_mb = get_available_memory_mb()
    threshold_mb = available_mb * MEMORY_FRACTION

    logger.info(f"Data size: ~{size_mb:.2f} MB")
    logger.info(f"Available RAM: {available_mb:.2f} MB (Threshold: {threshold_mb:.2f} MB)")

    if size_mb > threshold_mb:
        logger.warning("Data too large for RAM. Switching to disk-backed memory map (streaming load)...")
        array = np.load(path, mmap_mode="r")
    else:
        logger.info("Loading to RAM...")
        array = np.load(path)

    if array.ndim != 2:
        raise ValueError(f"Expected a 2-D feature matrix in {path}, got shape {array.shape}")
    return array


def open_data_file(
    file_path: str | Path,
    delimiter: str = ",",
    weight_column: int | None = None,
    skip_header: bool = False,
):
    """
    Open a data file as a re-iterable source.

    ``.npy`` files become an ArrayDataSource (weights taken from
    ``weight_column`` if given); anything else is streamed as delimited text.
    """
    path = Path(file_path)
    if path.suffix.lower() == ".npy":
        array = smart_load_array(path)
        if weight_column is None:
            return ArrayDataSource(array)
        weights = np.asarray(array[:, weight_column], dtype=np.float64)
        columns = np.delete(np.arange(array.shape[1]), weight_column)
        return ArrayDataSource(array[:, columns], weights)
    return CsvDataSource(path, delimiter=delimiter, weight_column=weight_column, skip_header=skip_header)


def write_scores(scores, output_path: str | Path):
    """Write one score per line; missing scores are written as 'nan'."""
    path = Path(output_path)
    with open(path, "w", encoding="utf-8") as handle:
        for score in scores:
            handle.write(f"{score:.9g}\n")
    logger.info(f"Wrote scores to {path}")
