"""
Service models for impact analysis.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import ConfigDict, Field, field_validator

from ...shared.models.base import BaseModel, FrozenModel
from ...shared.models.component import ComponentType, GraphNode


class RiskLevel(str, Enum):
    """Coarse deployment risk buckets."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ImpactAnalysisOptions(BaseModel):
    """Options for an impact cone traversal."""

    max_depth: Optional[int] = Field(default=None, ge=0, description="Deepest level expanded (None = unlimited)")
    include_types: Optional[List[ComponentType]] = Field(
        default=None, description="Only report nodes of these types (traversal still passes through others)"
    )
    include_paths: bool = Field(default=True, description="Record the shortest path back to a start node")

    @field_validator('include_types')
    @classmethod
    def validate_include_types(cls, v):
        if v is not None and not v:
            raise ValueError("include_types must name at least one component type")
        return v


class DependencyPath(FrozenModel):
    """How one affected component is reached from a changed component."""

    target: str = Field(..., description="Affected component id")
    path: List[str] = Field(..., description="Start id first, target id last")
    depth: int = Field(..., ge=1, description="Edge count from the start node")
    path_string: str = Field(..., description="Readable form, e.g. 'a@1.0.0 → b@1.0.0'")


class ImpactStats(FrozenModel):
    total_affected: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    max_depth: int = 0


class ImpactCone(BaseModel):
    """Everything reachable from the start ids over reverse dependency edges."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    start_ids: List[str] = Field(default_factory=list, description="Start ids present in the graph")
    affected_components: List[GraphNode] = Field(default_factory=list, description="In discovery order")
    depths: Dict[str, int] = Field(default_factory=dict, description="Depth per affected id")
    dependency_paths: List[DependencyPath] = Field(default_factory=list)
    stats: ImpactStats = Field(default_factory=ImpactStats)

    @property
    def affected_ids(self) -> List[str]:
        return [node.id for node in self.affected_components]

    def path_to(self, component_id: str) -> Optional[DependencyPath]:
        for path in self.dependency_paths:
            if path.target == component_id:
                return path
        return None


class DeploymentRisk(FrozenModel):
    risk: RiskLevel
    affected_count: int
    reason: str


class CriticalComponent(FrozenModel):
    node: GraphNode
    dependent_count: int
