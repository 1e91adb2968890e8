"""
Shared infrastructure components for compgraph.
"""

from .monitoring.logger import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
