"""
Definition helpers: labels, contract/config subsets and reference extraction.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Set

from pydantic import Field

from ...shared import FLOW_COMPONENTS, ComponentRef, DependencyType, FrozenModel, component_type_value
from ..reference_normalizer.service import (
    ReferenceNormalizer,
    flow_for_directory,
    is_file_path_string,
    is_ref_string,
    is_structured_ref,
    parse_file_path,
    parse_ref_string,
)


# Fields that carry scripts, text or layout, never component references
SKIPPED_FIELDS = frozenset({
    "labels", "label", "location", "code", "mapping", "rule", "timer", "versionStrategy",
})

_INDEX_SUFFIX = re.compile(r"\[\d+\]$")

# Checked against the field name first, then the parent path
_TYPE_HINTS = (
    ("task", DependencyType.TASK),
    ("schema", DependencyType.SCHEMA),
    ("view", DependencyType.VIEW),
    ("function", DependencyType.FUNCTION),
    ("extension", DependencyType.EXTENSION),
    ("feature", DependencyType.EXTENSION),
    ("subflow", DependencyType.SUBFLOW),
    ("process", DependencyType.SUBFLOW),
)


class ExtractedReference(FrozenModel):
    """A component reference found inside a definition."""

    ref: ComponentRef = Field(..., description="Normalized reference")
    dependency_type: DependencyType = Field(..., description="Inferred dependency type")
    path: str = Field(default="", description="Location inside the definition")
    version_range: Optional[str] = Field(default=None, description="Declared semver range")
    required: bool = Field(default=True, description="Declared requiredness")


def unwrap_definition(component: Dict[str, Any]) -> Dict[str, Any]:
    """Use the ``attributes`` payload when the component is wrapped in one."""
    attributes = component.get("attributes")
    if isinstance(attributes, dict):
        return attributes
    return component


def extract_label(definition: Optional[Dict[str, Any]]) -> Optional[str]:
    """Prefer an English entry of ``labels``, then ``label``, then ``name``."""
    if not definition:
        return None

    labels = definition.get("labels")
    if isinstance(labels, list) and labels:
        entries = [entry for entry in labels if isinstance(entry, dict)]
        for entry in entries:
            if entry.get("language") in ("en-US", "en") and entry.get("label"):
                return str(entry["label"])
        if entries and entries[0].get("label"):
            return str(entries[0]["label"])

    for field in ("label", "name"):
        if isinstance(definition.get(field), str) and definition[field]:
            return definition[field]
    return None


def extract_tags(definition: Dict[str, Any], component: Optional[Dict[str, Any]] = None) -> List[str]:
    tags = definition.get("tags")
    if not isinstance(tags, list) and component is not None:
        tags = component.get("tags")
    if not isinstance(tags, list):
        return []
    return [str(tag) for tag in tags if tag is not None]


def extract_api_signature(definition: Optional[Dict[str, Any]], component_type) -> Optional[Any]:
    """
    The contract-relevant subset of a definition.

    Types without an external contract (function, extension) return None, as
    do schemas and views without their contract field.
    """
    if not definition:
        return None
    component_type = component_type_value(component_type)

    if component_type == "workflow":
        start = definition.get("startTransition")
        return {
            "states": [
                {
                    "key": state.get("key"),
                    "stateType": state.get("stateType"),
                    "transitions": [
                        {
                            "key": t.get("key"),
                            "target": t.get("target"),
                            "triggerType": t.get("triggerType"),
                        }
                        for t in state.get("transitions") or []
                        if isinstance(t, dict)
                    ],
                }
                for state in definition.get("states") or []
                if isinstance(state, dict)
            ],
            "startTransition": {
                "key": start.get("key"),
                "target": start.get("target"),
            } if isinstance(start, dict) else None,
        }

    if component_type == "task":
        return {
            "parameters": definition.get("parameters"),
            "output": definition.get("output"),
        }

    if component_type == "schema":
        return definition.get("schema") or definition.get("properties")

    if component_type == "view":
        return definition.get("view") or definition.get("components")

    return None


def extract_config(definition: Optional[Dict[str, Any]], component_type) -> Optional[Dict[str, Any]]:
    """The behavioural/configuration subset of a definition."""
    if definition is None:
        return None
    component_type = component_type_value(component_type)

    config: Dict[str, Any] = {}
    for field in ("timeout", "features", "extensions"):
        if definition.get(field):
            config[field] = definition[field]

    if component_type == "workflow":
        config["type"] = definition.get("type")
        config["functions"] = definition.get("functions")
    elif component_type == "task":
        config["taskType"] = definition.get("taskType")
        config["config"] = definition.get("config")

    return config


def detect_reference(value: Any, normalizer: Optional[ReferenceNormalizer] = None) -> Optional[ComponentRef]:
    """
    Recognize a reference inside a definition.

    File paths only count when their top-level directory is a known
    component directory, which keeps free-text paths out of the graph.
    With a normalizer they resolve exactly as the normalizer resolves them
    (resolver, context defaults); without one the plain path heuristic is
    used.
    """
    if isinstance(value, Mapping):
        if is_structured_ref(value):
            return ComponentRef(
                domain=value["domain"], flow=value["flow"], key=value["key"], version=value["version"]
            )
        wrapped = value.get("ref")
        if isinstance(wrapped, str):
            return detect_reference(wrapped, normalizer)
        return None

    if isinstance(value, str):
        text = value.strip()
        if is_ref_string(text):
            return parse_ref_string(text)
        if is_file_path_string(text):
            top = text.replace("\\", "/").lstrip("./").split("/")[0]
            flow = flow_for_directory(top)
            if flow is None:
                return None
            if normalizer is not None:
                return normalizer.normalize(text, FLOW_COMPONENTS[flow], strict=False)
            return parse_file_path(text)
    return None


def _required_flag(value: Any) -> bool:
    """Only booleans and "true"/"false" strings are honoured; anything else is required."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return True


def infer_dependency_type(path: str) -> DependencyType:
    """Infer the dependency type from where a reference was found."""
    parts = path.split(".")
    field = _INDEX_SUFFIX.sub("", parts[-1]).lower()
    parent = ".".join(parts[:-1]).lower()

    for text in (field, parent):
        for fragment, dependency_type in _TYPE_HINTS:
            if fragment in text:
                return dependency_type
    return DependencyType.WORKFLOW


def extract_component_references(
    definition: Optional[Dict[str, Any]],
    normalizer: Optional[ReferenceNormalizer] = None,
) -> List[ExtractedReference]:
    """
    Recursively collect every component reference in a definition.

    Pass the normalizer the definition was normalized with so that file
    paths left in unnormalized positions resolve to the same ids.

    References are de-duplicated by canonical id (first occurrence wins) and
    the traversal does not descend into a value once it is a reference.
    """
    found: List[ExtractedReference] = []
    seen: Set[str] = set()

    if not isinstance(definition, dict):
        return found

    def traverse(value: Any, path: str) -> None:
        if path:
            ref = detect_reference(value, normalizer)
            if ref is not None:
                if ref.id not in seen:
                    seen.add(ref.id)
                    version_range = value.get("versionRange") if isinstance(value, Mapping) else None
                    required = value.get("required") if isinstance(value, Mapping) else None
                    found.append(ExtractedReference(
                        ref=ref,
                        dependency_type=infer_dependency_type(path),
                        path=path,
                        version_range=str(version_range) if version_range else None,
                        required=_required_flag(required),
                    ))
                return

        if isinstance(value, list):
            for index, item in enumerate(value):
                traverse(item, f"{path}[{index}]")
        elif isinstance(value, dict):
            for key, item in value.items():
                if key in SKIPPED_FIELDS:
                    continue
                traverse(item, f"{path}.{key}" if path else str(key))

    traverse(definition, "")
    return found
