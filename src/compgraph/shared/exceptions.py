"""
Common exceptions for compgraph.

Raised errors mean "the analysis could not run". Problems found *inside*
valid data (missing dependencies, cycles, drift) are returned as violations
by the diff engine and never raised.
"""

from typing import Any, Optional


class CompGraphError(Exception):
    """Base exception for all compgraph errors."""
    pass


class ConfigurationError(CompGraphError):
    """Raised when there are configuration or option issues."""
    pass


class ValidationError(CompGraphError):
    """Raised when data validation fails."""
    pass


class ReferenceResolutionError(ValidationError):
    """Raised when a component reference cannot be normalized in strict mode."""

    def __init__(self, message: str, raw_ref: Any = None, component_type: Optional[str] = None):
        super().__init__(message)
        self.raw_ref = raw_ref
        self.component_type = component_type


class GraphIntegrityError(CompGraphError):
    """Raised when a graph mutation would break its invariants."""
    pass


class ProcessingError(CompGraphError):
    """Raised when a graph build cannot run at all."""
    pass


class SnapshotError(CompGraphError):
    """Raised when a runtime snapshot cannot be read or understood."""
    pass
