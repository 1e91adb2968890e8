"""
Service models for graph building operations.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import ConfigDict, Field, field_validator

from ...shared.models.base import BaseModel
from ...shared.models.component import ComponentSource, ComponentType
from ...shared.models.graph import ComponentGraph


class BuildOptions(BaseModel):
    """Options for building a graph from a workspace directory."""

    base_path: Path = Field(..., description="Workspace root directory")
    include_types: Optional[List[ComponentType]] = Field(
        default=None, description="Component types to scan (None = all)"
    )
    compute_hashes: Optional[bool] = Field(default=None, description="Override the settings flag")
    strict: Optional[bool] = Field(default=None, description="Override strict reference handling")
    use_resolver: bool = Field(default=True, description="Resolve file references against the workspace")

    @field_validator('include_types')
    @classmethod
    def validate_include_types(cls, v):
        if v is not None and not v:
            raise ValueError("include_types must name at least one component type")
        return v


class ComponentRecord(BaseModel):
    """One raw component as read from a file or a runtime listing."""

    component_type: ComponentType = Field(..., description="Declared component type")
    data: Dict[str, Any] = Field(..., description="Raw component document")
    origin: str = Field(..., description="File path or listing position, for reporting")
    source: ComponentSource = Field(default=ComponentSource.LOCAL, validate_default=True, description="local or runtime")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra node metadata")


class SkippedFile(BaseModel):
    """A file or record that was not turned into a node."""

    origin: str = Field(..., description="File path or listing position")
    reason: str = Field(..., description="Short machine-friendly reason")
    detail: Optional[str] = Field(default=None, description="Human-readable detail")


class BuildReport(BaseModel):
    """Counters for one build, suitable for printing or logging."""

    files_discovered: int = Field(default=0, description="Candidate files found while scanning")
    nodes_created: int = Field(default=0, description="Nodes added to the graph")
    skipped: List[SkippedFile] = Field(default_factory=list, description="Files not turned into nodes")
    edges_created: int = Field(default=0, description="Edges added while ingesting")
    edges_deferred: int = Field(default=0, description="Edges whose target was not present yet")
    edges_reconciled: int = Field(default=0, description="Deferred edges added in the second pass")
    dangling_edges: int = Field(default=0, description="Edges left pointing at missing components")
    duration_ms: float = Field(default=0.0, description="Wall-clock build time")

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def total_edges(self) -> int:
        return self.edges_created + self.edges_reconciled + self.dangling_edges

    def skip(self, origin: str, reason: str, detail: Optional[str] = None) -> SkippedFile:
        entry = SkippedFile(origin=origin, reason=reason, detail=detail)
        self.skipped.append(entry)
        return entry

    def summary(self) -> str:
        return (
            f"{self.nodes_created} nodes, {self.total_edges} edges "
            f"({self.dangling_edges} dangling), {self.skipped_count} skipped "
            f"of {self.files_discovered} files in {self.duration_ms:.0f}ms"
        )


class BuildResult(BaseModel):
    """A built graph together with its build report."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: ComponentGraph = Field(..., description="The built graph")
    report: BuildReport = Field(default_factory=BuildReport, description="Build counters")
