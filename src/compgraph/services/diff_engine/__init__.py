"""
Diff Engine Service for compgraph.

Classifies differences between a local and a runtime graph (structure,
versions, content hashes) and health problems inside one graph (semver
ranges, missing dependencies, cycles).
"""

from .service import DiffEngine, diff_graphs, satisfies
from .models import (
    AnyViolation,
    GraphDelta,
    DeltaStats,
    Severity,
    Violation,
    ViolationType,
    DRIFT_TYPES,
)

__all__ = [
    "DiffEngine",
    "diff_graphs",
    "satisfies",
    "AnyViolation",
    "GraphDelta",
    "DeltaStats",
    "Severity",
    "Violation",
    "ViolationType",
    "DRIFT_TYPES",
]
