"""
Impact Analysis Service for compgraph.

Reverse-dependency traversal: which components are affected when a given
set of components changes, how they are reached, and how risky that is.
"""

from .service import ImpactAnalysisService, classify_risk
from .models import (
    CriticalComponent,
    DependencyPath,
    DeploymentRisk,
    ImpactAnalysisOptions,
    ImpactCone,
    ImpactStats,
    RiskLevel,
)

__all__ = [
    "ImpactAnalysisService",
    "classify_risk",
    "CriticalComponent",
    "DependencyPath",
    "DeploymentRisk",
    "ImpactAnalysisOptions",
    "ImpactCone",
    "ImpactStats",
    "RiskLevel",
]
