"""
Runtime adapter backed by JSON snapshot files.

Two snapshot shapes are understood:

* a serialized graph (``ComponentGraph.to_dict`` output, with ``nodes``)
* a per-type instance listing ``{"task": [instance, ...], ...}``, where an
  instance carries ``key``, ``domain``, ``flow``, ``flowVersion``, ``tags``
  and the component payload under ``attributes``

Instance listings are built through the regular builder ingestion path so a
runtime component hashes exactly like the same component on disk.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from ...shared import (
    ComponentGraph, ComponentSource, ComponentType, Settings, SnapshotError, ValidationError,
    component_type_value, get_logger, get_settings,
)
from ..graph_builder import ComponentRecord, GraphBuilderService


COMPONENT_TYPE_NAMES = tuple(t.value for t in ComponentType)


class SnapshotRuntimeAdapter:
    """
    Serves runtime graphs from snapshot files.

    ``path`` is either one snapshot file used for every environment, or a
    directory holding one ``<environment>.json`` per environment.
    """

    def __init__(self, path: Union[str, Path], settings: Optional[Settings] = None):
        self.path = Path(path)
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.builder = GraphBuilderService(self.settings)

    def snapshot_path(self, environment: str) -> Path:
        if self.path.is_dir():
            return self.path / f"{environment}.json"
        return self.path

    def test_connection(self, environment: str) -> bool:
        """A snapshot "connection" works when its file can be parsed."""
        try:
            self._load(environment)
        except SnapshotError as e:
            self.logger.warning(f"Snapshot for {environment} unavailable: {e}")
            return False
        return True

    def fetch_graph(
        self,
        environment: str,
        domain: Optional[str] = None,
        include_types: Optional[Iterable[ComponentType]] = None,
        compute_hashes: bool = False,
    ) -> ComponentGraph:
        """
        Load the runtime graph of an environment.

        Args:
            environment: Environment id (selects the file in directory mode)
            domain: Only keep components of this domain (None keeps all)
            include_types: Only keep these component types (None keeps all)
            compute_hashes: Hash instance listings; serialized graphs keep
                whatever hashes they were saved with

        Raises:
            SnapshotError: If the snapshot is unreadable or of unknown shape
        """
        data = self._load(environment)
        types = {component_type_value(t) for t in include_types} if include_types else None
        metadata = {
            "source": ComponentSource.RUNTIME.value,
            "environment_id": environment,
            "snapshot": str(self.snapshot_path(environment)),
        }

        if isinstance(data.get("nodes"), list):
            graph = self._graph_from_serialized(data, domain, types, metadata)
        else:
            listing = data.get("components", data)
            if not isinstance(listing, dict):
                raise SnapshotError(f"Snapshot components in {self.snapshot_path(environment)} must be an object")
            listing = {name: value for name, value in listing.items() if name != "metadata"}
            unknown = [name for name in listing if name not in COMPONENT_TYPE_NAMES]
            if unknown or not listing:
                raise SnapshotError(
                    f"Unrecognized snapshot shape in {self.snapshot_path(environment)}: "
                    f"expected 'nodes' or component type keys, found {sorted(listing)}"
                )
            records = self._records_from_listing(listing, domain, types)
            result = self.builder.build_from_records(records, metadata=metadata, compute_hashes=compute_hashes)
            graph = result.graph

        self.logger.info(f"Loaded runtime graph for {environment}: {graph}")
        return graph

    def _load(self, environment: str) -> Dict[str, Any]:
        path = self.snapshot_path(environment)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Snapshot {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot {path} must contain a JSON object")
        return data

    def _graph_from_serialized(
        self,
        data: Dict[str, Any],
        domain: Optional[str],
        types: Optional[set],
        metadata: Dict[str, Any],
    ) -> ComponentGraph:
        try:
            loaded = ComponentGraph.from_dict(data)
        except ValidationError as e:
            raise SnapshotError(str(e)) from e

        graph = ComponentGraph(metadata={**loaded.metadata, **metadata})
        for node in loaded.nodes.values():
            if domain and node.ref.domain != domain.lower():
                continue
            if types and node.type not in types:
                continue
            graph.add_node(node)
        for edge in loaded.edges.values():
            if graph.has_node(edge.source_id):
                graph.add_edge(edge, allow_dangling=True)
        return graph

    def _records_from_listing(
        self,
        listing: Dict[str, Any],
        domain: Optional[str],
        types: Optional[set],
    ) -> Iterator[ComponentRecord]:
        for component_type in COMPONENT_TYPE_NAMES:
            if types and component_type not in types:
                continue
            instances = listing.get(component_type) or []
            if not isinstance(instances, list):
                raise SnapshotError(f"Snapshot entry {component_type!r} must be a list of instances")

            for index, instance in enumerate(instances):
                origin = f"runtime:{component_type}[{index}]"
                data = instance_to_component(instance)
                if data is None:
                    self.logger.warning(f"Skipping {origin}: instance has no definition")
                    continue
                if domain and str(data["domain"]).lower() != domain.lower():
                    continue
                yield ComponentRecord(
                    component_type=component_type,
                    data=data,
                    origin=origin,
                    source=ComponentSource.RUNTIME,
                    metadata=_instance_metadata(instance),
                )


def instance_to_component(instance: Any) -> Optional[Dict[str, Any]]:
    """
    Convert a runtime instance into the on-disk component shape.

    Identifying fields in the definition take precedence over the instance
    envelope; the version falls back to ``flowVersion`` then ``1.0.0``.
    Returns None when the instance has no definition.
    """
    if not isinstance(instance, dict):
        return None
    definition = instance.get("attributes")
    if not isinstance(definition, dict) or not definition:
        return None

    domain = definition.get("domain") or instance.get("domain")
    key = definition.get("key") or instance.get("key")
    if not domain or not key:
        return None

    component: Dict[str, Any] = {
        "key": key,
        "domain": domain,
        "version": definition.get("version") or instance.get("flowVersion") or "1.0.0",
        "tags": instance.get("tags") or definition.get("tags") or [],
        "attributes": definition,
    }
    flow = definition.get("flow") or instance.get("flow")
    if flow:
        component["flow"] = flow
    return component


def _instance_metadata(instance: Dict[str, Any]) -> Dict[str, Any]:
    fields = (("id", "runtime_id"), ("etag", "etag"), ("createdAt", "created_at"), ("updatedAt", "updated_at"))
    return {name: instance[field] for field, name in fields if instance.get(field) is not None}


__all__ = ["SnapshotRuntimeAdapter", "instance_to_component"]
