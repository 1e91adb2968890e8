"""
Impact Analysis Service implementation.

All traversals are breadth-first over incoming edges, i.e. from a component
to the components that depend on it. A visited set bounds every traversal,
so graphs that still contain cycles are handled.
"""

from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Set, Tuple, Union

from ...shared import (
    ComponentGraph, GraphNode, Settings, component_type_value, get_logger, get_settings, short_label,
)
from .models import (
    CriticalComponent,
    DependencyPath,
    DeploymentRisk,
    ImpactAnalysisOptions,
    ImpactCone,
    ImpactStats,
    RiskLevel,
)


class ImpactAnalysisService:
    """
    Computes impact cones and the helpers built on them.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the service."""
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)

    def impact_cone(
        self,
        graph: ComponentGraph,
        start_ids: Union[str, Iterable[str]],
        options: Optional[ImpactAnalysisOptions] = None,
    ) -> ImpactCone:
        """
        Find every component affected by a change to ``start_ids``.

        Start ids that are not in the graph are ignored. Start nodes are part
        of the result at depth 0. A node deeper than ``max_depth`` is neither
        reported nor expanded.

        ``include_types`` only decides which nodes are reported. Excluded
        nodes are still expanded, so a workflow that depends on a change
        through a filtered-out component is found.

        Args:
            graph: Graph to traverse (not modified)
            start_ids: Changed component id(s)
            options: Depth limit, type filter and path recording

        Returns:
            The impact cone with per-node depth and optional paths
        """
        options = options or ImpactAnalysisOptions()
        if isinstance(start_ids, str):
            start_ids = [start_ids]

        include_types = (
            {component_type_value(t) for t in options.include_types} if options.include_types else None
        )

        visited: Set[str] = set()
        queue: Deque[Tuple[str, List[str], int]] = deque()
        present: List[str] = []
        for start_id in start_ids:
            if start_id in visited:
                continue
            if not graph.has_node(start_id):
                self.logger.debug(f"Impact start id {start_id} is not in the graph")
                continue
            visited.add(start_id)
            present.append(start_id)
            queue.append((start_id, [start_id], 0))

        affected: List[GraphNode] = []
        depths: Dict[str, int] = {}
        paths: List[DependencyPath] = []
        max_reached = 0

        while queue:
            current_id, path, depth = queue.popleft()
            if options.max_depth is not None and depth > options.max_depth:
                continue

            node = graph.get_node(current_id)
            if node is None:
                continue

            if include_types is None or node.type in include_types:
                affected.append(node)
                depths[current_id] = depth
                max_reached = max(max_reached, depth)
                if options.include_paths and depth > 0:
                    paths.append(DependencyPath(
                        target=current_id,
                        path=list(path),
                        depth=depth,
                        path_string=" → ".join(short_label(i) for i in path),
                    ))

            for edge in graph.incoming_edges(current_id):
                if edge.source_id not in visited:
                    visited.add(edge.source_id)
                    queue.append((edge.source_id, path + [edge.source_id], depth + 1))

        by_type: Dict[str, int] = {}
        for node in affected:
            by_type[node.type] = by_type.get(node.type, 0) + 1

        cone = ImpactCone(
            start_ids=present,
            affected_components=affected,
            depths=depths,
            dependency_paths=paths,
            stats=ImpactStats(total_affected=len(affected), by_type=by_type, max_depth=max_reached),
        )
        self.logger.info(
            f"Impact of {len(present)} component(s): {len(affected)} affected, max depth {max_reached}"
        )
        return cone

    def direct_dependents(self, graph: ComponentGraph, component_id: str) -> List[GraphNode]:
        """Components with an edge into ``component_id``."""
        return graph.dependents(component_id)

    def all_dependents(self, graph: ComponentGraph, component_id: str) -> List[GraphNode]:
        """Every transitive dependent, without the component itself."""
        cone = self.impact_cone(graph, [component_id], ImpactAnalysisOptions(include_paths=False))
        return [node for node in cone.affected_components if node.id != component_id]

    def find_critical_components(self, graph: ComponentGraph, threshold: int = 5) -> List[CriticalComponent]:
        """Components with at least ``threshold`` direct dependents, most depended-on first."""
        critical = []
        for node in graph.nodes.values():
            count = len(graph.dependents(node.id))
            if count >= threshold:
                critical.append(CriticalComponent(node=node, dependent_count=count))
        # sort is stable, ties keep graph order
        critical.sort(key=lambda item: item.dependent_count, reverse=True)
        return critical

    def estimate_deployment_risk(self, graph: ComponentGraph, component_ids: Iterable[str]) -> DeploymentRisk:
        """Bucket the size of the impact cone into a risk level."""
        cone = self.impact_cone(graph, list(component_ids), ImpactAnalysisOptions(include_paths=False))
        return classify_risk(cone.stats.total_affected, self.settings.risk_thresholds)

    def find_shortest_path(self, graph: ComponentGraph, from_id: str, to_id: str) -> Optional[List[str]]:
        """
        Shortest chain of dependents from ``from_id`` to ``to_id``.

        Returns:
            Ids from ``from_id`` to ``to_id`` inclusive, or None if unreachable
        """
        if not graph.has_node(from_id):
            return None

        visited: Set[str] = {from_id}
        queue: Deque[Tuple[str, List[str]]] = deque([(from_id, [from_id])])
        while queue:
            current_id, path = queue.popleft()
            if current_id == to_id:
                return path
            for edge in graph.incoming_edges(current_id):
                if edge.source_id not in visited:
                    visited.add(edge.source_id)
                    queue.append((edge.source_id, path + [edge.source_id]))
        return None


def classify_risk(affected_count: int, thresholds: Tuple[int, int, int] = (5, 15, 30)) -> DeploymentRisk:
    """Map an affected-component count onto the four risk levels."""
    low, medium, high = thresholds
    if affected_count <= low:
        return DeploymentRisk(
            risk=RiskLevel.LOW, affected_count=affected_count,
            reason=f"Only {affected_count} component(s) affected",
        )
    if affected_count <= medium:
        return DeploymentRisk(
            risk=RiskLevel.MEDIUM, affected_count=affected_count,
            reason=f"{affected_count} components affected",
        )
    if affected_count <= high:
        return DeploymentRisk(
            risk=RiskLevel.HIGH, affected_count=affected_count,
            reason=f"{affected_count} components affected - significant impact",
        )
    return DeploymentRisk(
        risk=RiskLevel.CRITICAL, affected_count=affected_count,
        reason=f"{affected_count} components affected - very high impact",
    )
