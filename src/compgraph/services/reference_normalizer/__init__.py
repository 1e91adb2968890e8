"""
Reference Normalizer Service for compgraph.

Converts the reference encodings found in raw component definitions
(structured, wrapped file reference, compact string, bare file path) into one
canonical ``ComponentRef``.
"""

from .service import ReferenceNormalizer
from .models import NormalizationContext
from .resolver import ComponentResolver, FileComponentResolver

__all__ = [
    "ReferenceNormalizer",
    "NormalizationContext",
    "ComponentResolver",
    "FileComponentResolver",
]
