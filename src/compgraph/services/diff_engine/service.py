"""
Diff Engine implementation.

``diff`` compares a local graph with a runtime graph; ``check`` runs only the
health passes that need a single graph. Each pass is independent and returns
its own violations; the results are concatenated in pass order.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Set

import semantic_version

from ...shared import (
    ComponentGraph, ComponentRef, GraphNode, Settings, get_logger, get_settings,
    logical_id, parse_component_id, short_label,
)
from .models import (
    ApiDriftViolation,
    CircularDependencyViolation,
    ConfigDriftViolation,
    CycleDetails,
    GraphDelta,
    HashDriftDetails,
    MissingDependencyDetails,
    MissingDependencyViolation,
    NodeAddedViolation,
    NodeChangedDetails,
    NodeChangedViolation,
    NodePresenceDetails,
    NodeRemovedViolation,
    SemverDetails,
    SemverViolation,
    VersionDriftDetails,
    VersionDriftViolation,
    Violation,
)


class DiffEngine:
    """
    Computes violations between two graphs and within one graph.

    The engine never mutates the graphs it is given and keeps no state
    between calls.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the engine."""
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

    def diff(self, local: ComponentGraph, runtime: ComponentGraph) -> GraphDelta:
        """
        Compare a local graph against a runtime graph.

        Args:
            local: Design-time graph (health passes run on this one)
            runtime: Deployed graph, or the "before" side of a comparison

        Returns:
            Delta with every violation and aggregate statistics
        """
        violations: List[Violation] = []
        violations.extend(self.detect_node_differences(local, runtime))
        violations.extend(self.detect_version_drift(local, runtime))
        violations.extend(self.detect_hash_drift(local, runtime))
        violations.extend(self._health_violations(local))

        delta = GraphDelta.from_violations(violations, metadata={
            "local_graph_source": local.metadata.get("source"),
            "runtime_graph_source": runtime.metadata.get("source"),
            "environment_id": runtime.metadata.get("environment_id"),
        })
        self._log_summary("Diff", delta)
        return delta

    def check(self, graph: ComponentGraph) -> GraphDelta:
        """Run the single-graph health passes (semver, missing, cycles)."""
        delta = GraphDelta.from_violations(
            self._health_violations(graph),
            metadata={"local_graph_source": graph.metadata.get("source")},
        )
        self._log_summary("Check", delta)
        return delta

    def _health_violations(self, graph: ComponentGraph) -> List[Violation]:
        violations: List[Violation] = []
        violations.extend(self.detect_semver_violations(graph))
        violations.extend(self.detect_missing_dependencies(graph))
        violations.extend(self.detect_circular_dependencies(graph))
        return violations

    def _log_summary(self, operation: str, delta: GraphDelta) -> None:
        stats = delta.stats
        self.logger.info(
            f"{operation} complete: {stats.total_violations} violations "
            f"({stats.error_count} errors, {stats.warning_count} warnings, {stats.info_count} info)"
        )
        for violation in delta.violations:
            self.logger.debug(f"[{violation.severity}] {violation.type}: {violation.message}")

    # === Two-graph passes ===

    def detect_node_differences(self, local: ComponentGraph, runtime: ComponentGraph) -> List[Violation]:
        """Added (info), removed (warning) and changed label/tags (info)."""
        violations: List[Violation] = []

        for node_id, node in local.nodes.items():
            if node_id not in runtime.nodes:
                violations.append(NodeAddedViolation(
                    component_ids=[node_id],
                    message=f"Component {short_label(node_id)} exists in local but not in runtime",
                    details=NodePresenceDetails(ref=node.ref, component_type=node.type),
                ))

        for node_id, node in runtime.nodes.items():
            if node_id not in local.nodes:
                violations.append(NodeRemovedViolation(
                    component_ids=[node_id],
                    message=f"Component {short_label(node_id)} exists in runtime but not in local",
                    details=NodePresenceDetails(ref=node.ref, component_type=node.type),
                ))

        for node_id, node in local.nodes.items():
            other = runtime.nodes.get(node_id)
            if other is None:
                continue
            changes = self._node_changes(node, other)
            if changes:
                violations.append(NodeChangedViolation(
                    component_ids=[node_id],
                    message=f"Component {short_label(node_id)} has changes: {', '.join(changes)}",
                    details=NodeChangedDetails(ref=node.ref, changes=changes),
                ))

        return violations

    @staticmethod
    def _node_changes(local: GraphNode, runtime: GraphNode) -> List[str]:
        changes = []
        if local.label != runtime.label:
            changes.append("label")
        if list(local.tags) != list(runtime.tags):
            changes.append("tags")
        return changes

    def detect_version_drift(self, local: ComponentGraph, runtime: ComponentGraph) -> List[Violation]:
        """
        One warning per logical component whose version sets differ.

        Components present in only one graph are left to the added/removed
        pass.
        """
        local_versions = self._versions_by_component(local)
        runtime_versions = self._versions_by_component(runtime)
        violations: List[Violation] = []

        for component, versions in local_versions.items():
            other = runtime_versions.get(component)
            if other is None or other == versions:
                continue

            local_sorted = sorted(versions)
            runtime_sorted = sorted(other)
            ref = local.nodes[f"{component}@{local_sorted[0]}"].ref
            violations.append(VersionDriftViolation(
                component_ids=[ref.id],
                message=(
                    f"Version drift for {ref.key}: local has {', '.join(local_sorted)}, "
                    f"runtime has {', '.join(runtime_sorted)}"
                ),
                details=VersionDriftDetails(
                    ref=ref, local_versions=local_sorted, runtime_versions=runtime_sorted
                ),
            ))

        return violations

    @staticmethod
    def _versions_by_component(graph: ComponentGraph) -> Dict[str, Set[str]]:
        versions: Dict[str, Set[str]] = defaultdict(set)
        for node in graph.nodes.values():
            versions[logical_id(node.ref)].add(node.ref.version)
        return versions

    def detect_hash_drift(self, local: ComponentGraph, runtime: ComponentGraph) -> List[Violation]:
        """
        Same id, different hashes: api drift is an error, config drift a warning.

        A hash missing on either side is not compared.
        """
        violations: List[Violation] = []

        for node_id, node in local.nodes.items():
            other = runtime.nodes.get(node_id)
            if other is None:
                continue

            if node.api_hash and other.api_hash and node.api_hash != other.api_hash:
                violations.append(ApiDriftViolation(
                    component_ids=[node_id],
                    message=f"API breaking change detected in {short_label(node_id)}",
                    details=HashDriftDetails(ref=node.ref, local_hash=node.api_hash, runtime_hash=other.api_hash),
                ))

            if node.config_hash and other.config_hash and node.config_hash != other.config_hash:
                violations.append(ConfigDriftViolation(
                    component_ids=[node_id],
                    message=f"Configuration drift detected in {short_label(node_id)}",
                    details=HashDriftDetails(
                        ref=node.ref, local_hash=node.config_hash, runtime_hash=other.config_hash
                    ),
                ))

        return violations

    # === Single-graph passes ===

    def detect_semver_violations(self, graph: ComponentGraph) -> List[Violation]:
        """Edges whose target version does not satisfy the declared npm-style range."""
        violations: List[Violation] = []

        for node in graph.nodes.values():
            for edge in graph.outgoing_edges(node.id):
                if not edge.version_range:
                    continue
                target = graph.get_node(edge.target_id)
                if target is None:
                    continue

                satisfied, error = satisfies(target.version, edge.version_range)
                if satisfied:
                    continue

                message = (
                    f"{node.ref.key} requires {target.ref.key}@{edge.version_range}, "
                    f"but found {target.version}"
                )
                if error:
                    message = f"{message} ({error})"
                violations.append(SemverViolation(
                    component_ids=[node.id, target.id],
                    message=message,
                    details=SemverDetails(
                        dependent=node.ref,
                        dependency=target.ref,
                        required_range=edge.version_range,
                        actual_version=target.version,
                        error=error,
                    ),
                ))

        return violations

    def detect_missing_dependencies(self, graph: ComponentGraph) -> List[Violation]:
        """One error per edge whose target id has no node."""
        violations: List[Violation] = []

        for node in graph.nodes.values():
            for edge in graph.outgoing_edges(node.id):
                if graph.has_node(edge.target_id):
                    continue
                missing_ref = parse_component_id(edge.target_id)
                violations.append(MissingDependencyViolation(
                    component_ids=[node.id, edge.target_id],
                    message=(
                        f"{node.ref.key} depends on {short_label(edge.target_id)}, which does not exist"
                    ),
                    details=MissingDependencyDetails(
                        dependent=node.ref,
                        missing_id=edge.target_id,
                        missing_ref=missing_ref,
                        dependency_type=edge.type,
                        required=edge.required,
                    ),
                ))

        return violations

    def detect_circular_dependencies(self, graph: ComponentGraph) -> List[Violation]:
        """
        Depth-first search with an explicit stack.

        Revisiting a node that is on the current path closes a cycle; the
        path slice from that node onward is reported. Cycles found from
        different starting points are reported once, keyed by their sorted
        member ids.
        """
        violations: List[Violation] = []
        visited: Set[str] = set()
        seen_cycles: Set[str] = set()

        for start in graph.nodes:
            if start in visited:
                continue

            path: List[str] = [start]
            on_path: Set[str] = {start}
            stack = [iter(graph.outgoing_edges(start))]
            visited.add(start)

            while stack:
                edge = next(stack[-1], None)
                if edge is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue

                target = edge.target_id
                if target in on_path:
                    cycle = path[path.index(target):]
                    canonical = "|".join(sorted(set(cycle)))
                    if canonical not in seen_cycles:
                        seen_cycles.add(canonical)
                        violations.append(self._cycle_violation(cycle))
                elif target not in visited and graph.has_node(target):
                    visited.add(target)
                    path.append(target)
                    on_path.add(target)
                    stack.append(iter(graph.outgoing_edges(target)))

        return violations

    @staticmethod
    def _cycle_violation(cycle: List[str]) -> CircularDependencyViolation:
        closed = cycle + [cycle[0]]
        refs: List[ComponentRef] = [ref for ref in (parse_component_id(i) for i in closed) if ref is not None]
        cycle_path = " → ".join(short_label(i) for i in closed)
        return CircularDependencyViolation(
            component_ids=list(cycle),
            message=f"Circular dependency detected: {cycle_path}",
            details=CycleDetails(cycle=refs, cycle_path=cycle_path),
        )


def satisfies(version: str, version_range: str):
    """
    Check a version against an npm-style range.

    Returns:
        ``(satisfied, error)``; an unparseable version or range is reported
        as not satisfied with the parse error
    """
    try:
        npm_range = semantic_version.NpmSpec(version_range.strip())
    except ValueError as e:
        return False, f"invalid version range: {e}"

    try:
        parsed = semantic_version.Version(version.strip().lstrip("v="))
    except ValueError as e:
        return False, f"invalid version: {e}"

    return npm_range.match(parsed), None


def diff_graphs(local: ComponentGraph, runtime: ComponentGraph, settings: Optional[Settings] = None) -> GraphDelta:
    """Convenience wrapper around ``DiffEngine.diff``."""
    return DiffEngine(settings).diff(local, runtime)
