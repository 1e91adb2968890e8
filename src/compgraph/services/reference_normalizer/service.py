"""
Reference Normalizer implementation.

Accepted reference forms, in priority order:

1. structured ``{key, domain, flow, version}`` (passed through, lower-cased)
2. wrapped file reference ``{"ref": "..."}`` (unwrapped and reprocessed)
3. compact string ``domain/flow/key@version``
4. bare file path, resolved through the resolver collaborator or, without
   one, by a side-effect-free heuristic on the path itself
"""

import copy
import os
import re
from typing import Any, Dict, List, Mapping, Optional

from ...shared import (
    COMPONENT_FLOWS, ComponentRef, ComponentType, ReferenceResolutionError, component_type_value,
    Settings, get_logger, get_settings,
)
from .models import NormalizationContext


REF_STRING_PATTERN = re.compile(r"^([^/]+)/([^/]+)/([^@]+)@(.+)$")

# Ordered: the first matching fragment of the top-level directory wins
DIRECTORY_FLOWS = (
    ("task", "sys-tasks"),
    ("schema", "sys-schemas"),
    ("view", "sys-views"),
    ("function", "sys-functions"),
    ("extension", "sys-extensions"),
    ("workflow", "sys-flows"),
    ("flow", "sys-flows"),
)

STRUCTURED_FIELDS = ("key", "domain", "flow", "version")


def is_structured_ref(value: Any) -> bool:
    """True for a mapping carrying all four identifying fields as strings."""
    return isinstance(value, Mapping) and all(
        isinstance(value.get(field), str) and value.get(field).strip() for field in STRUCTURED_FIELDS
    )


def is_ref_string(value: str) -> bool:
    return bool(REF_STRING_PATTERN.match(value))


def is_file_path_string(value: str) -> bool:
    """Heuristic: contains a separator and is either a .json path or has no version marker."""
    return "/" in value and (value.endswith(".json") or "@" not in value)


def parse_ref_string(value: str) -> Optional[ComponentRef]:
    """Parse ``domain/flow/key@version``; None if the string does not match."""
    match = REF_STRING_PATTERN.match(value.strip())
    if not match:
        return None
    domain, flow, key, version = match.groups()
    return ComponentRef(domain=domain, flow=flow, key=key, version=version)


def flow_for_directory(directory: str) -> Optional[str]:
    """Map a top-level directory name to its canonical flow, if known."""
    lowered = directory.lower()
    for fragment, flow in DIRECTORY_FLOWS:
        if fragment in lowered:
            return flow
    return None


def parse_file_path(
    path: str,
    component_type: Optional[str] = None,
    default_domain: str = "core",
    default_version: str = "1.0.0",
) -> Optional[ComponentRef]:
    """
    Heuristically turn a file path into a reference.

    The last segment minus its extension is the key; the top-level directory
    selects the flow. When the directory is unknown the declared component
    type's flow is used; with no declared type the path is rejected.
    """
    parts = [p for p in path.replace("\\", "/").split("/") if p and p not in (".", "..")]
    if not parts:
        return None

    key = os.path.splitext(parts[-1])[0].strip()
    if not key:
        return None

    flow = flow_for_directory(parts[0]) if len(parts) > 1 else None
    if flow is None and component_type:
        flow = COMPONENT_FLOWS.get(component_type)
    if flow is None:
        return None

    return ComponentRef(domain=default_domain, flow=flow, key=key, version=default_version)


class ReferenceNormalizer:
    """
    Normalizes component references to ``ComponentRef``.

    In non-strict mode an unresolvable reference yields None and callers keep
    the raw value. In strict mode a ``ReferenceResolutionError`` is raised.
    """

    def __init__(
        self,
        context: Optional[NormalizationContext] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the normalizer with an explicit context."""
        self.settings = settings or get_settings()
        self.context = context or NormalizationContext(
            strict=self.settings.strict_references,
            default_domain=self.settings.default_domain,
            default_version=self.settings.default_version,
        )
        self.logger = get_logger(__name__)

    @property
    def strict(self) -> bool:
        return self.context.strict

    def normalize(
        self,
        raw: Any,
        component_type: str,
        strict: Optional[bool] = None,
    ) -> Optional[ComponentRef]:
        """
        Normalize a raw reference of unknown shape.

        Args:
            raw: Reference value as found in a definition
            component_type: Declared component type of the referenced component
            strict: Override the context's strict flag for this call

        Returns:
            Canonical reference, or None when unresolvable in non-strict mode

        Raises:
            ReferenceResolutionError: When unresolvable in strict mode
        """
        strict = self.context.strict if strict is None else strict
        component_type = component_type_value(component_type)

        if isinstance(raw, ComponentRef):
            return raw

        if isinstance(raw, Mapping):
            if is_structured_ref(raw):
                return ComponentRef(
                    domain=raw["domain"], flow=raw["flow"], key=raw["key"], version=raw["version"]
                )
            wrapped = raw.get("ref")
            if isinstance(wrapped, str) and wrapped.strip():
                return self.normalize(wrapped, component_type, strict=strict)

        elif isinstance(raw, str) and raw.strip():
            value = raw.strip()
            if is_ref_string(value):
                return parse_ref_string(value)
            if is_file_path_string(value):
                return self._resolve_file_path(value, component_type, strict)

        return self._fail(raw, component_type, strict, "unrecognized reference format")

    def normalize_many(self, raws: List[Any], component_type: str) -> List[ComponentRef]:
        """Normalize a list, dropping entries that do not resolve (non-strict)."""
        refs = []
        for raw in raws:
            ref = self.normalize(raw, component_type)
            if ref is not None:
                refs.append(ref)
        return refs

    def _resolve_file_path(self, path: str, component_type: str, strict: bool) -> Optional[ComponentRef]:
        resolver = self.context.resolver
        if resolver is not None:
            try:
                component = resolver.resolve({"ref": path}, component_type)
            except (OSError, ValueError) as e:
                if strict:
                    raise ReferenceResolutionError(
                        f"Resolver failed for {path!r}: {e}", raw_ref=path, component_type=component_type
                    ) from e
                self.logger.debug(f"Resolver failed for {path}: {e}; falling back to path heuristic")
                component = None

            ref = self._ref_from_component(component, component_type) if component else None
            if ref is not None:
                return ref
            if strict:
                return self._fail(path, component_type, strict, "referenced component not found")

        elif strict:
            return self._fail(path, component_type, strict, "strict mode requires a resolver for file references")

        ref = parse_file_path(
            path,
            component_type=component_type,
            default_domain=self.context.default_domain,
            default_version=self.context.default_version,
        )
        if ref is None:
            return self._fail(path, component_type, strict, "file path does not identify a component")
        return ref

    def _ref_from_component(self, component: Dict[str, Any], component_type: str) -> Optional[ComponentRef]:
        key = component.get("key")
        domain = component.get("domain")
        if not key or not domain:
            return None
        return ComponentRef(
            key=str(key),
            domain=str(domain),
            flow=str(component.get("flow") or COMPONENT_FLOWS.get(component_type, "sys-flows")),
            version=str(component.get("version") or self.context.default_version),
        )

    def _fail(self, raw: Any, component_type: str, strict: bool, reason: str) -> None:
        if strict:
            raise ReferenceResolutionError(
                f"Cannot normalize {component_type} reference {raw!r}: {reason}",
                raw_ref=raw,
                component_type=component_type,
            )
        self.logger.debug(f"Unresolved {component_type} reference {raw!r}: {reason}")
        return None

    # === Workflow definitions ===

    def normalize_workflow_references(self, definition: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of a workflow definition with every embedded reference
        replaced by its structured form.

        Covered: start/cancel transitions, states (schema, view, task,
        onEntries, onExits, subFlow, transitions), shared transitions and the
        workflow-level ``functions``/``extensions``/``features`` lists.
        References that do not resolve keep their raw value.
        """
        normalized = copy.deepcopy(definition)

        for field in ("startTransition", "cancel"):
            if isinstance(normalized.get(field), dict):
                self._normalize_transition(normalized[field])

        for state in _dicts(normalized.get("states")):
            self._replace(state, "schema", ComponentType.SCHEMA.value)
            self._replace(state, "task", ComponentType.TASK.value)
            self._normalize_view(state)
            for entry in _dicts(state.get("onEntries")) + _dicts(state.get("onExits")):
                self._replace(entry, "task", ComponentType.TASK.value)
            sub_flow = state.get("subFlow")
            if isinstance(sub_flow, dict):
                self._replace(sub_flow, "process", ComponentType.WORKFLOW.value)
                self._normalize_view_overrides(sub_flow)
            for transition in _dicts(state.get("transitions")):
                self._normalize_transition(transition)

        for transition in _dicts(normalized.get("sharedTransitions")):
            self._normalize_transition(transition)

        for field, component_type in (
            ("functions", ComponentType.FUNCTION.value),
            ("extensions", ComponentType.EXTENSION.value),
            ("features", ComponentType.EXTENSION.value),
        ):
            items = normalized.get(field)
            if isinstance(items, list):
                normalized[field] = [self._resolve_value(item, component_type) for item in items]

        return normalized

    def _normalize_transition(self, transition: Dict[str, Any]) -> None:
        self._replace(transition, "schema", ComponentType.SCHEMA.value)
        self._normalize_view(transition)
        self._normalize_view_overrides(transition)
        for exec_task in _dicts(transition.get("onExecutionTasks")):
            self._replace(exec_task, "task", ComponentType.TASK.value)

    def _normalize_view(self, holder: Dict[str, Any]) -> None:
        view = holder.get("view")
        # ViewConfig wraps the reference under its own "view" key
        if isinstance(view, dict) and "view" in view and not is_structured_ref(view):
            self._replace(view, "view", ComponentType.VIEW.value)
        else:
            self._replace(holder, "view", ComponentType.VIEW.value)

    def _normalize_view_overrides(self, holder: Dict[str, Any]) -> None:
        overrides = holder.get("viewOverrides")
        if not isinstance(overrides, dict):
            return
        for state_key, view in overrides.items():
            if isinstance(view, dict) and "view" in view and not is_structured_ref(view):
                self._replace(view, "view", ComponentType.VIEW.value)
            elif view:
                overrides[state_key] = self._resolve_value(view, ComponentType.VIEW.value)

    def _replace(self, holder: Dict[str, Any], field: str, component_type: str) -> None:
        if holder.get(field):
            holder[field] = self._resolve_value(holder[field], component_type)

    def _resolve_value(self, raw: Any, component_type: str) -> Any:
        ref = self.normalize(raw, component_type)
        if ref is None:
            return raw
        resolved = ref.model_dump()
        # Carry constraint fields that live next to the identifying ones
        if isinstance(raw, Mapping):
            for extra in ("versionRange", "required"):
                if extra in raw:
                    resolved[extra] = raw[extra]
        return resolved


def _dicts(value: Any) -> List[Dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


