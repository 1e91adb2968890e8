"""
Domain services for compgraph.

Contains the main analysis services:
- reference_normalizer: Canonical component references from any encoding
- graph_builder: Workspace or runtime listing to dependency graph
- diff_engine: Drift and health violations between/within graphs
- impact_analysis: Reverse-dependency impact cones and risk
- runtime: Boundary for deployed-environment graph suppliers
"""

from .reference_normalizer import ReferenceNormalizer, NormalizationContext, FileComponentResolver
from .graph_builder import GraphBuilderService, BuildOptions, BuildReport, BuildResult
from .diff_engine import DiffEngine, GraphDelta, Severity, ViolationType, diff_graphs
from .impact_analysis import ImpactAnalysisService, ImpactAnalysisOptions, ImpactCone
from .runtime import RuntimeAdapter, SnapshotRuntimeAdapter

__all__ = [
    "ReferenceNormalizer",
    "NormalizationContext",
    "FileComponentResolver",
    "GraphBuilderService",
    "BuildOptions",
    "BuildReport",
    "BuildResult",
    "DiffEngine",
    "GraphDelta",
    "Severity",
    "ViolationType",
    "diff_graphs",
    "ImpactAnalysisService",
    "ImpactAnalysisOptions",
    "ImpactCone",
    "RuntimeAdapter",
    "SnapshotRuntimeAdapter",
]
