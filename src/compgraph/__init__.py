"""
compgraph - dependency graph, drift and impact analysis for versioned components.
"""

__version__ = "1.0.0"

# Re-export main components for easy access
from .shared.config.settings import Settings, get_settings
from .shared.models import ComponentGraph, ComponentRef, GraphEdge, GraphNode
from .shared.exceptions import CompGraphError, ReferenceResolutionError
from .services import (
    DiffEngine,
    GraphBuilderService,
    ImpactAnalysisService,
    ReferenceNormalizer,
)

__all__ = [
    "Settings",
    "get_settings",
    "ComponentGraph",
    "ComponentRef",
    "GraphNode",
    "GraphEdge",
    "CompGraphError",
    "ReferenceResolutionError",
    "ReferenceNormalizer",
    "GraphBuilderService",
    "DiffEngine",
    "ImpactAnalysisService",
]
