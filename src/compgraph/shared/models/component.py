"""
Component value types for compgraph.

A component is a versioned, typed unit of configuration (task, schema, view,
function, extension or workflow). These models are pure data: a reference,
a graph node and a dependency edge.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from pydantic import Field, field_validator, model_validator

from .base import FrozenModel, MetadataMixin


COMPONENT_ID_PATTERN = re.compile(r"^([^/]+)/([^/]+)/([^@]+)@(.+)$")


class ComponentType(str, Enum):
    """Component types supported by the system."""
    TASK = "task"
    SCHEMA = "schema"
    VIEW = "view"
    FUNCTION = "function"
    EXTENSION = "extension"
    WORKFLOW = "workflow"


class DependencyType(str, Enum):
    """Kinds of dependency an edge can represent."""
    TASK = "task"
    SCHEMA = "schema"
    VIEW = "view"
    FUNCTION = "function"
    EXTENSION = "extension"
    WORKFLOW = "workflow"
    SUBFLOW = "subflow"


class ComponentSource(str, Enum):
    """Where a node was read from."""
    LOCAL = "local"
    RUNTIME = "runtime"


# Each component type is deployed through a specific system flow
COMPONENT_FLOWS: Dict[str, str] = {
    "task": "sys-tasks",
    "schema": "sys-schemas",
    "view": "sys-views",
    "function": "sys-functions",
    "extension": "sys-extensions",
    "workflow": "sys-flows",
}

FLOW_COMPONENTS: Dict[str, str] = {flow: ctype for ctype, flow in COMPONENT_FLOWS.items()}


class ComponentRef(FrozenModel):
    """
    Reference to one version of a component.

    ``domain``, ``flow`` and ``key`` are lower-cased on construction; the
    version is kept verbatim.
    """

    domain: str = Field(..., min_length=1, description="Owning domain")
    flow: str = Field(..., min_length=1, description="System flow the component lives in")
    key: str = Field(..., min_length=1, description="Component key")
    version: str = Field(..., min_length=1, description="Semantic version, verbatim")

    @field_validator('domain', 'flow', 'key')
    @classmethod
    def lower_case(cls, v):
        """Normalize identifying parts to lower case."""
        return v.strip().lower()

    @field_validator('version')
    @classmethod
    def strip_version(cls, v):
        return v.strip()

    @property
    def id(self) -> str:
        """Canonical component id: ``domain/flow/key@version``."""
        return to_component_id(self)

    @property
    def logical_id(self) -> str:
        """Version-erased id: ``domain/flow/key``."""
        return logical_id(self)

    def __str__(self) -> str:
        return self.id


class GraphNode(FrozenModel, MetadataMixin):
    """
    A component in the dependency graph.

    ``api_hash`` covers the external contract of the definition,
    ``config_hash`` the remaining behavioural content. Both are absent when
    hashing was skipped or the type has no extractor.
    """

    id: str = Field(..., description="Canonical component id")
    ref: ComponentRef = Field(..., description="Component reference")
    type: ComponentType = Field(..., description="Component type")
    label: Optional[str] = Field(default=None, description="Display label")
    definition: Dict[str, Any] = Field(default_factory=dict, description="Normalized component definition")
    api_hash: Optional[str] = Field(default=None, alias="apiHash", description="Hash of the API signature")
    config_hash: Optional[str] = Field(default=None, alias="configHash", description="Hash of the configuration subset")
    source: ComponentSource = Field(
        default=ComponentSource.LOCAL, validate_default=True, description="local (workspace) or runtime (deployed)"
    )
    tags: List[str] = Field(default_factory=list, description="Component tags, order preserved")

    @model_validator(mode='before')
    @classmethod
    def derive_id(cls, data):
        """Fill ``id`` from ``ref`` when it was not supplied."""
        if isinstance(data, dict) and not data.get('id') and data.get('ref') is not None:
            ref = data['ref']
            if not isinstance(ref, ComponentRef):
                ref = ComponentRef.model_validate(ref)
            data = {**data, 'ref': ref, 'id': ref.id}
        return data

    @model_validator(mode='after')
    def check_id_matches_ref(self):
        if self.id != self.ref.id:
            raise ValueError(f"Node id {self.id!r} does not match its reference {self.ref.id!r}")
        return self

    @property
    def version(self) -> str:
        return self.ref.version


class GraphEdge(FrozenModel, MetadataMixin):
    """
    A dependency: ``source_id`` depends on ``target_id``.

    Serialized with the ``from``/``to``/``versionRange`` field names.
    """

    id: str = Field(..., description="Edge id, always '{from}->{to}'")
    source_id: str = Field(..., alias="from", description="Dependent component id")
    target_id: str = Field(..., alias="to", description="Dependency component id")
    type: DependencyType = Field(..., description="Dependency type")
    required: bool = Field(default=True, description="Whether the dependency is required")
    version_range: Optional[str] = Field(
        default=None, alias="versionRange", description="Semver range the dependent accepts"
    )

    @model_validator(mode='before')
    @classmethod
    def derive_id(cls, data):
        if isinstance(data, dict) and not data.get('id'):
            source = data.get('source_id', data.get('from'))
            target = data.get('target_id', data.get('to'))
            if source and target:
                data = {**data, 'id': edge_id(source, target)}
        return data

    @model_validator(mode='after')
    def check_id(self):
        expected = edge_id(self.source_id, self.target_id)
        if self.id != expected:
            raise ValueError(f"Edge id {self.id!r} must be {expected!r}")
        return self


def to_component_id(ref: ComponentRef) -> str:
    """Create the canonical id from a reference."""
    return f"{ref.domain}/{ref.flow}/{ref.key}@{ref.version}"


def logical_id(ref: ComponentRef) -> str:
    """Create a version-erased id for partial matching."""
    return f"{ref.domain}/{ref.flow}/{ref.key}"


def parse_component_id(component_id: str) -> Optional[ComponentRef]:
    """Parse a canonical id back into a reference, or None if malformed."""
    if not isinstance(component_id, str):
        return None
    match = COMPONENT_ID_PATTERN.match(component_id)
    if not match:
        return None
    domain, flow, key, version = match.groups()
    return ComponentRef(domain=domain, flow=flow, key=key, version=version)


def split_component_id(component_id: str) -> Tuple[str, str]:
    """Split ``domain/flow/key@version`` into (logical id, version)."""
    head, _, version = component_id.rpartition("@")
    return head, version


def edge_id(source_id: str, target_id: str) -> str:
    """Edge ids collapse multi-edges between the same ordered pair."""
    return f"{source_id}->{target_id}"


def short_label(component_id: str) -> str:
    """Human-readable ``key@version`` form used in messages."""
    ref = parse_component_id(component_id)
    return f"{ref.key}@{ref.version}" if ref else component_id


def component_type_value(component_type) -> str:
    """Plain string value of a component/dependency type (enum or str)."""
    return component_type.value if isinstance(component_type, Enum) else str(component_type)
