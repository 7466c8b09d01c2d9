"""File logging for command-line runs."""

import logging
import os
from datetime import datetime


def setup_logger(log_dir: str, verbose: bool = False) -> logging.Logger:
    """Creates a file logger for the ``codeintel`` package. All verbose output goes here."""
    logger = logging.getLogger("codeintel")
    logger.setLevel(logging.DEBUG)

    # One file handler per process
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return logger

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"codeintel_{timestamp}.log")

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG if verbose else logging.INFO)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger
