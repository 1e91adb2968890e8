"""
Shared components for compgraph.

Contains common models, utilities, and infrastructure used across all services:

- Component value types and the dependency graph container
- Centralized configuration management
- Shared exception hierarchy
- Logging infrastructure
"""

from .models import *
from .config import *
from .exceptions import *
from .infrastructure import *

__all__ = [
    # From models
    "BaseModel", "FrozenModel", "MetadataMixin",
    "ComponentRef", "ComponentType", "ComponentSource", "DependencyType",
    "GraphNode", "GraphEdge", "ComponentGraph", "build_graph",
    "COMPONENT_FLOWS", "FLOW_COMPONENTS",
    "to_component_id", "parse_component_id", "split_component_id",
    "logical_id", "edge_id", "short_label", "component_type_value",

    # From config
    "Settings", "get_settings",

    # From exceptions
    "CompGraphError", "ConfigurationError", "ValidationError",
    "ReferenceResolutionError", "GraphIntegrityError", "ProcessingError",
    "SnapshotError",

    # From infrastructure
    "get_logger", "setup_logging",
]
