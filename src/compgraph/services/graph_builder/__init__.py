"""
Graph Builder Service for compgraph.

Discovers component files (or takes a runtime listing), normalizes embedded
references, hashes definitions and links dependencies into a ComponentGraph.
"""

from .service import GraphBuilderService
from .models import BuildOptions, BuildReport, BuildResult, ComponentRecord, SkippedFile
from .repository import ComponentFileRepository
from .hashing import canonicalize, compute_hash
from .extraction import (
    ExtractedReference,
    extract_api_signature,
    extract_component_references,
    extract_config,
    extract_label,
)

__all__ = [
    "GraphBuilderService",
    "BuildOptions",
    "BuildReport",
    "BuildResult",
    "ComponentRecord",
    "SkippedFile",
    "ComponentFileRepository",
    "canonicalize",
    "compute_hash",
    "ExtractedReference",
    "extract_api_signature",
    "extract_component_references",
    "extract_config",
    "extract_label",
]
