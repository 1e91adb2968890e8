"""
Shared data models for compgraph.
"""

from .base import BaseModel, FrozenModel, MetadataMixin
from .component import (
    COMPONENT_FLOWS,
    FLOW_COMPONENTS,
    ComponentRef,
    ComponentSource,
    ComponentType,
    DependencyType,
    GraphEdge,
    GraphNode,
    edge_id,
    logical_id,
    parse_component_id,
    short_label,
    component_type_value,
    split_component_id,
    to_component_id,
)
from .graph import ComponentGraph, build_graph

__all__ = [
    # Component models
    "ComponentRef",
    "ComponentType",
    "ComponentSource",
    "DependencyType",
    "GraphNode",
    "GraphEdge",
    "COMPONENT_FLOWS",
    "FLOW_COMPONENTS",
    "to_component_id",
    "parse_component_id",
    "split_component_id",
    "logical_id",
    "edge_id",
    "short_label",
    "component_type_value",
    # Graph container
    "ComponentGraph",
    "build_graph",
    # Base models
    "BaseModel",
    "FrozenModel",
    "MetadataMixin",
]
