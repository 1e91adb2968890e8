"""
Graph Builder Service implementation.

Builds a ``ComponentGraph`` from a workspace directory or from a runtime
listing. Both inputs go through the same ingestion steps; edges whose target
is not known yet are deferred and reconciled in a second pass once every
node is in the graph.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ...shared import (
    COMPONENT_FLOWS, ComponentGraph, ComponentRef, ComponentSource, ComponentType, ConfigurationError,
    GraphEdge, GraphNode,
    ProcessingError, ReferenceResolutionError, Settings, component_type_value, get_logger, get_settings,
)
from ..reference_normalizer import FileComponentResolver, NormalizationContext, ReferenceNormalizer
from .extraction import (
    ExtractedReference,
    extract_api_signature,
    extract_component_references,
    extract_config,
    extract_label,
    extract_tags,
    unwrap_definition,
)
from .hashing import compute_hash
from .models import BuildOptions, BuildReport, BuildResult, ComponentRecord
from .repository import ComponentFileRepository


REQUIRED_FIELDS = ("key", "domain", "version")

# Callback receiving (origin, outcome); outcome is "added" or a skip reason
FileCallback = Callable[[str, str], None]


class GraphBuilderService:
    """
    Service for building dependency graphs from component definitions.

    The service holds no per-build state; every call creates its own graph,
    normalizer and report, so one instance can serve concurrent builds.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the service."""
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.repository = ComponentFileRepository(self.settings)

    def build_local_graph(
        self,
        options: Union[BuildOptions, Path, str],
        on_file: Optional[FileCallback] = None,
    ) -> BuildResult:
        """
        Build a graph from a workspace directory.

        Args:
            options: Build options, or just the workspace root
            on_file: Optional progress callback, called once per discovered file

        Returns:
            The graph together with its build report

        Raises:
            ProcessingError: If the root path is missing or not a directory
            ReferenceResolutionError: On an unresolvable reference in strict mode
        """
        if not isinstance(options, BuildOptions):
            options = BuildOptions(base_path=Path(options))

        base_path = Path(options.base_path)
        if not base_path.is_dir():
            raise ProcessingError(f"Workspace root does not exist or is not a directory: {base_path}")

        start_time = time.perf_counter()
        types = self._resolve_types(options.include_types)
        compute_hashes = self.settings.compute_hashes if options.compute_hashes is None else options.compute_hashes
        strict = self.settings.strict_references if options.strict is None else options.strict

        resolver = FileComponentResolver(base_path, self.settings) if options.use_resolver else None
        normalizer = self._create_normalizer(base_path, resolver, strict)

        graph = ComponentGraph(metadata={
            "source": ComponentSource.LOCAL.value,
            "base_path": str(base_path),
        })
        report = BuildReport()
        references: Dict[str, List[ExtractedReference]] = {}

        self.logger.info(f"Building local graph from {base_path} ({', '.join(types)})")

        for component_type in types:
            for search_dir in self.settings.search_paths_for(component_type):
                directory = base_path / search_dir
                if not directory.is_dir():
                    continue

                paths = self.repository.scan_json_files(directory)
                report.files_discovered += len(paths)
                self.logger.debug(f"Found {len(paths)} {component_type} files in {directory}")

                # Reads run in parallel; insertion stays in discovery order
                for path, data, reason, detail in self.repository.read_components(paths):
                    origin = str(path)
                    if data is None:
                        report.skip(origin, reason, detail)
                        self.logger.warning(f"Skipping {origin}: {reason} ({detail})")
                        self._notify(on_file, origin, reason)
                        continue

                    record = ComponentRecord(
                        component_type=component_type,
                        data=data,
                        origin=origin,
                        source=ComponentSource.LOCAL,
                        metadata={"file_path": origin},
                    )
                    outcome = self._ingest(graph, record, normalizer, compute_hashes, report, references)
                    self._notify(on_file, origin, outcome)

        self._reconcile(graph, references, report)
        report.duration_ms = (time.perf_counter() - start_time) * 1000

        self.logger.info(f"Local graph built: {report.summary()}")
        return BuildResult(graph=graph, report=report)

    def build_from_records(
        self,
        records: Iterable[ComponentRecord],
        metadata: Optional[Dict[str, Any]] = None,
        compute_hashes: Optional[bool] = None,
        strict: Optional[bool] = None,
        on_file: Optional[FileCallback] = None,
    ) -> BuildResult:
        """
        Build a graph from already-loaded component documents.

        Used for runtime listings. File references cannot be resolved here,
        so the path heuristic is used for them.
        """
        start_time = time.perf_counter()
        compute_hashes = self.settings.compute_hashes if compute_hashes is None else compute_hashes
        strict = self.settings.strict_references if strict is None else strict
        normalizer = self._create_normalizer(None, None, strict)

        graph = ComponentGraph(metadata=metadata)
        report = BuildReport()
        references: Dict[str, List[ExtractedReference]] = {}

        for record in records:
            report.files_discovered += 1
            outcome = self._ingest(graph, record, normalizer, compute_hashes, report, references)
            self._notify(on_file, record.origin, outcome)

        self._reconcile(graph, references, report)
        report.duration_ms = (time.perf_counter() - start_time) * 1000

        self.logger.info(f"Graph built from records: {report.summary()}")
        return BuildResult(graph=graph, report=report)

    def build_from_listing(
        self,
        listing: Mapping[str, Iterable[Dict[str, Any]]],
        source: ComponentSource = ComponentSource.RUNTIME,
        metadata: Optional[Dict[str, Any]] = None,
        compute_hashes: Optional[bool] = None,
    ) -> BuildResult:
        """
        Build a graph from documents grouped by component type.

        ``listing`` maps a component type name to the on-disk shaped
        documents of that type.
        """
        types = self._resolve_types(list(listing.keys()))

        def records():
            for component_type in types:
                for index, data in enumerate(listing.get(component_type) or []):
                    if not isinstance(data, dict):
                        continue
                    yield ComponentRecord(
                        component_type=component_type,
                        data=data,
                        origin=f"{component_type_value(source)}:{component_type}[{index}]",
                        source=source,
                    )

        return self.build_from_records(records(), metadata=metadata, compute_hashes=compute_hashes)

    # === Ingestion ===

    def _ingest(
        self,
        graph: ComponentGraph,
        record: ComponentRecord,
        normalizer: ReferenceNormalizer,
        compute_hashes: bool,
        report: BuildReport,
        references: Dict[str, List[ExtractedReference]],
    ) -> str:
        """Turn one record into a node plus its resolvable edges."""
        data = record.data
        component_type = component_type_value(record.component_type)

        missing = [
            field for field in REQUIRED_FIELDS
            if data.get(field) is None or not str(data.get(field)).strip()
        ]
        if missing:
            report.skip(record.origin, "missing_fields", f"missing {', '.join(missing)}")
            self.logger.debug(f"Skipping {record.origin}: missing {', '.join(missing)}")
            return "missing_fields"

        ref = ComponentRef(
            domain=str(data["domain"]).strip(),
            flow=str(data.get("flow") or COMPONENT_FLOWS[component_type]).strip(),
            key=str(data["key"]).strip(),
            version=str(data["version"]).strip(),
        )

        if graph.has_node(ref.id):
            report.skip(record.origin, "duplicate_id", f"{ref.id} already provided by an earlier file")
            self.logger.debug(f"Skipping {record.origin}: duplicate id {ref.id}")
            return "duplicate_id"

        definition = unwrap_definition(data)
        if component_type == ComponentType.WORKFLOW.value:
            try:
                definition = normalizer.normalize_workflow_references(definition)
            except ReferenceResolutionError as e:
                self.logger.error(f"Strict reference check failed in {record.origin}: {e}")
                raise

        api_hash = config_hash = None
        if compute_hashes:
            api_hash = compute_hash(extract_api_signature(definition, component_type))
            config_hash = compute_hash(extract_config(definition, component_type))

        node = GraphNode(
            ref=ref,
            type=component_type,
            label=extract_label(definition),
            definition=definition,
            api_hash=api_hash,
            config_hash=config_hash,
            source=record.source,
            tags=extract_tags(definition, data),
            metadata=record.metadata,
        )
        graph.add_node(node)
        report.nodes_created += 1

        if component_type == ComponentType.WORKFLOW.value:
            extracted = extract_component_references(definition, normalizer)
            references[node.id] = extracted
            for reference in extracted:
                if graph.has_node(reference.ref.id):
                    if graph.add_edge(self._edge(node.id, reference)):
                        report.edges_created += 1
                else:
                    report.edges_deferred += 1

        return "added"

    def _reconcile(
        self,
        graph: ComponentGraph,
        references: Dict[str, List[ExtractedReference]],
        report: BuildReport,
    ) -> None:
        """
        Second pass: add every edge missed while ingesting.

        Targets that now exist get a regular edge; targets that never
        appeared get a dangling edge for the diff engine to report.
        """
        for node_id, extracted in references.items():
            for reference in extracted:
                target_id = reference.ref.id
                if graph.has_edge(node_id, target_id):
                    continue
                if graph.has_node(target_id):
                    graph.add_edge(self._edge(node_id, reference))
                    report.edges_reconciled += 1
                else:
                    graph.add_edge(self._edge(node_id, reference), allow_dangling=True)
                    report.dangling_edges += 1
                    self.logger.debug(f"Unresolved dependency {node_id} -> {target_id}")

        if report.edges_reconciled or report.dangling_edges:
            self.logger.info(
                f"Reconciled {report.edges_reconciled} deferred edges, "
                f"{report.dangling_edges} left dangling"
            )

    @staticmethod
    def _edge(source_id: str, reference: ExtractedReference) -> GraphEdge:
        return GraphEdge(
            source_id=source_id,
            target_id=reference.ref.id,
            type=reference.dependency_type,
            required=reference.required,
            version_range=reference.version_range,
            metadata={"path": reference.path},
        )

    # === Helpers ===

    def _create_normalizer(
        self,
        base_path: Optional[Path],
        resolver: Optional[FileComponentResolver],
        strict: bool,
    ) -> ReferenceNormalizer:
        context = NormalizationContext(
            base_path=base_path,
            resolver=resolver,
            strict=strict,
            default_domain=self.settings.default_domain,
            default_version=self.settings.default_version,
        )
        return ReferenceNormalizer(context=context, settings=self.settings)

    @staticmethod
    def _resolve_types(include_types: Optional[Iterable[Any]]) -> List[str]:
        """Selected type names in the fixed scan order."""
        all_types = [t.value for t in ComponentType]
        if include_types is None:
            return all_types
        wanted = {component_type_value(t) for t in include_types}
        unknown = wanted - set(all_types)
        if unknown:
            raise ConfigurationError(f"Unknown component type(s): {', '.join(sorted(unknown))}")
        return [t for t in all_types if t in wanted]

    def _notify(self, on_file: Optional[FileCallback], origin: str, outcome: str) -> None:
        if on_file is not None:
            on_file(origin, outcome)
