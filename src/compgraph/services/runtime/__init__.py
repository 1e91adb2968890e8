"""
Runtime boundary for compgraph.

Adapters that supply the graph of a deployed environment. Only a snapshot
file adapter ships here; network transports implement ``RuntimeAdapter``.
"""

from .adapter import RuntimeAdapter
from .snapshot import SnapshotRuntimeAdapter, instance_to_component

__all__ = [
    "RuntimeAdapter",
    "SnapshotRuntimeAdapter",
    "instance_to_component",
]
