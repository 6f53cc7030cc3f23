"""
Logging configuration for the command line tools.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here, once, by the entry point.
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_file: str | Path | None = None) -> logging.Logger:
    """
    Setup logging configuration.

    Args:
        verbose: Show INFO records on the console (default: WARNING and up)
        log_file: Optional file receiving INFO records and up

    Returns:
        The package logger
    """
    logger = logging.getLogger("pca_anomaly")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Avoid duplicated handlers when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
