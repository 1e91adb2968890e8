"""
Service models for graph diffing.

Every violation kind is its own model with a fixed ``type`` literal, so a
delta serializes as a discriminated union and consumers can switch on
``type`` without inspecting ``details``.
"""

import time
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import Field

from ...shared.models.base import BaseModel, FrozenModel
from ...shared.models.component import ComponentRef


class Severity(str, Enum):
    """Violation severity levels."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ViolationType(str, Enum):
    """Kinds of difference or health problem the diff engine reports."""
    NODE_ADDED = "node-added"
    NODE_REMOVED = "node-removed"
    NODE_CHANGED = "node-changed"
    VERSION_DRIFT = "version-drift"
    API_DRIFT = "api-drift"
    CONFIG_DRIFT = "config-drift"
    SEMVER_VIOLATION = "semver-violation"
    MISSING_DEPENDENCY = "missing-dependency"
    CIRCULAR_DEPENDENCY = "circular-dependency"


# Passes that compare two graphs; the rest look at the local graph only
DRIFT_TYPES = frozenset({
    ViolationType.NODE_ADDED.value,
    ViolationType.NODE_REMOVED.value,
    ViolationType.NODE_CHANGED.value,
    ViolationType.VERSION_DRIFT.value,
    ViolationType.API_DRIFT.value,
    ViolationType.CONFIG_DRIFT.value,
})


# === Details ===

class NodePresenceDetails(FrozenModel):
    ref: ComponentRef
    component_type: str


class NodeChangedDetails(FrozenModel):
    ref: ComponentRef
    changes: List[str] = Field(..., description="Changed fields, e.g. label, tags")


class VersionDriftDetails(FrozenModel):
    ref: ComponentRef = Field(..., description="Logical component, with its first local version")
    local_versions: List[str]
    runtime_versions: List[str]


class HashDriftDetails(FrozenModel):
    ref: ComponentRef
    local_hash: str
    runtime_hash: str


class SemverDetails(FrozenModel):
    dependent: ComponentRef
    dependency: ComponentRef
    required_range: str
    actual_version: str
    error: Optional[str] = Field(default=None, description="Parse error when range or version is invalid")


class MissingDependencyDetails(FrozenModel):
    dependent: ComponentRef
    missing_id: str
    missing_ref: Optional[ComponentRef] = None
    dependency_type: str
    required: bool = True


class CycleDetails(FrozenModel):
    cycle: List[ComponentRef]
    cycle_path: str = Field(..., description="Readable path, e.g. 'a@1.0.0 → b@1.0.0 → a@1.0.0'")


# === Violations ===

class Violation(FrozenModel):
    """Base violation: severity, implicated ids and a readable message."""

    severity: Severity
    component_ids: List[str] = Field(..., min_length=1)
    message: str


class NodeAddedViolation(Violation):
    type: Literal["node-added"] = "node-added"
    severity: Severity = Field(default=Severity.INFO, validate_default=True)
    details: NodePresenceDetails


class NodeRemovedViolation(Violation):
    type: Literal["node-removed"] = "node-removed"
    severity: Severity = Field(default=Severity.WARNING, validate_default=True)
    details: NodePresenceDetails


class NodeChangedViolation(Violation):
    type: Literal["node-changed"] = "node-changed"
    severity: Severity = Field(default=Severity.INFO, validate_default=True)
    details: NodeChangedDetails


class VersionDriftViolation(Violation):
    type: Literal["version-drift"] = "version-drift"
    severity: Severity = Field(default=Severity.WARNING, validate_default=True)
    details: VersionDriftDetails


class ApiDriftViolation(Violation):
    type: Literal["api-drift"] = "api-drift"
    severity: Severity = Field(default=Severity.ERROR, validate_default=True)
    details: HashDriftDetails


class ConfigDriftViolation(Violation):
    type: Literal["config-drift"] = "config-drift"
    severity: Severity = Field(default=Severity.WARNING, validate_default=True)
    details: HashDriftDetails


class SemverViolation(Violation):
    type: Literal["semver-violation"] = "semver-violation"
    severity: Severity = Field(default=Severity.ERROR, validate_default=True)
    details: SemverDetails


class MissingDependencyViolation(Violation):
    type: Literal["missing-dependency"] = "missing-dependency"
    severity: Severity = Field(default=Severity.ERROR, validate_default=True)
    details: MissingDependencyDetails


class CircularDependencyViolation(Violation):
    type: Literal["circular-dependency"] = "circular-dependency"
    severity: Severity = Field(default=Severity.ERROR, validate_default=True)
    details: CycleDetails


AnyViolation = Annotated[
    Union[
        NodeAddedViolation,
        NodeRemovedViolation,
        NodeChangedViolation,
        VersionDriftViolation,
        ApiDriftViolation,
        ConfigDriftViolation,
        SemverViolation,
        MissingDependencyViolation,
        CircularDependencyViolation,
    ],
    Field(discriminator="type"),
]


# === Delta ===

class DeltaStats(FrozenModel):
    """Counts computed once over the full violation list."""

    total_violations: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    nodes_added: int = 0
    nodes_removed: int = 0
    nodes_changed: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)


class GraphDelta(BaseModel):
    """Result of one diff or check invocation."""

    violations: List[AnyViolation] = Field(default_factory=list)
    stats: DeltaStats = Field(default_factory=DeltaStats)
    timestamp: float = Field(default_factory=time.time, description="When the delta was computed")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Graph sources and environment id")

    @property
    def by_severity(self) -> Dict[str, List[Violation]]:
        """Violations partitioned by severity, in report order."""
        partition: Dict[str, List[Violation]] = {severity.value: [] for severity in Severity}
        for violation in self.violations:
            partition[violation.severity].append(violation)
        return partition

    @property
    def errors(self) -> List[Violation]:
        return self.by_severity[Severity.ERROR.value]

    @property
    def has_errors(self) -> bool:
        return self.stats.error_count > 0

    def of_type(self, violation_type: Union[ViolationType, str]) -> List[Violation]:
        wanted = violation_type.value if isinstance(violation_type, ViolationType) else violation_type
        return [v for v in self.violations if v.type == wanted]

    def for_component(self, component_id: str) -> List[Violation]:
        return [v for v in self.violations if component_id in v.component_ids]

    @classmethod
    def from_violations(cls, violations: List[Violation], metadata: Optional[Dict[str, Any]] = None) -> "GraphDelta":
        """Build a delta and its statistics from a flat violation list."""
        by_type: Dict[str, int] = {}
        by_severity: Dict[str, int] = {severity.value: 0 for severity in Severity}
        for violation in violations:
            by_type[violation.type] = by_type.get(violation.type, 0) + 1
            by_severity[violation.severity] += 1

        stats = DeltaStats(
            total_violations=len(violations),
            error_count=by_severity[Severity.ERROR.value],
            warning_count=by_severity[Severity.WARNING.value],
            info_count=by_severity[Severity.INFO.value],
            nodes_added=by_type.get(ViolationType.NODE_ADDED.value, 0),
            nodes_removed=by_type.get(ViolationType.NODE_REMOVED.value, 0),
            nodes_changed=by_type.get(ViolationType.NODE_CHANGED.value, 0),
            by_type=by_type,
        )
        return cls(violations=list(violations), stats=stats, metadata=dict(metadata or {}))
