"""
Centralized logging configuration for compgraph.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from functools import lru_cache

from ...config.settings import get_settings


@lru_cache()
def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    include_timestamp: bool = True
) -> None:
    """
    Setup centralized logging configuration.

    Args:
        log_level: Logging level (defaults to settings)
        log_file: Optional log file path (defaults to settings)
        include_timestamp: Whether to include timestamps
    """
    settings = get_settings()

    level_str = (log_level or settings.logging_config.get('level') or "INFO").upper()
    level = getattr(logging, level_str, logging.INFO)
    log_file = log_file or settings.logging_config.get('file')

    # Create formatter
    if include_timestamp:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            '%(name)s - %(levelname)s - %(message)s'
        )

    # Only the package logger is configured; host applications keep their root setup
    package_logger = logging.getLogger("compgraph")
    package_logger.setLevel(level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    logging.getLogger('networkx').setLevel(logging.WARNING)


@lru_cache()
def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
