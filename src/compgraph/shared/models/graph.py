"""
Dependency graph container for compgraph.

``ComponentGraph`` owns the node and edge mappings plus two adjacency
indexes (outgoing by source id, incoming by target id) that are kept in step
with the edge mapping on every insertion. The diff engine and impact analysis
only read graphs; mutation happens while building.
"""

import json
import time
from collections import defaultdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

import networkx as nx

from ..exceptions import GraphIntegrityError, ValidationError
from .component import GraphEdge, GraphNode, edge_id, logical_id


class ComponentGraph:
    """
    Directed dependency graph keyed by canonical component id.

    Edges whose target has no node ("dangling" edges) are accepted only when
    explicitly allowed; the diff engine reports them as missing dependencies.
    """

    def __init__(self, metadata: Optional[Dict[str, Any]] = None):
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: Dict[str, GraphEdge] = {}
        self.outgoing: Dict[str, List[GraphEdge]] = defaultdict(list)
        self.incoming: Dict[str, List[GraphEdge]] = defaultdict(list)
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.metadata.setdefault("timestamp", time.time())

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self.nodes.values())

    def __repr__(self) -> str:
        return f"ComponentGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"

    # === Mutation ===

    def add_node(self, node: GraphNode) -> bool:
        """
        Add a node. The first node stored under an id wins.

        Returns:
            True if the node was added, False if the id already existed
        """
        if node.id in self.nodes:
            return False
        self.nodes[node.id] = node
        return True

    def add_edge(self, edge: GraphEdge, allow_dangling: bool = False) -> bool:
        """
        Add a dependency edge, collapsing duplicates of the same ordered pair.

        Args:
            edge: Edge to insert
            allow_dangling: Accept an edge whose target node does not exist

        Returns:
            True if the edge was added, False if an edge with that id exists

        Raises:
            GraphIntegrityError: If the source node is absent, or the target
                is absent and dangling edges are not allowed
        """
        if edge.source_id not in self.nodes:
            raise GraphIntegrityError(f"Cannot add edge: source node {edge.source_id} does not exist")
        if not allow_dangling and edge.target_id not in self.nodes:
            raise GraphIntegrityError(f"Cannot add edge: target node {edge.target_id} does not exist")
        if edge.id in self.edges:
            return False

        self.edges[edge.id] = edge
        self.outgoing[edge.source_id].append(edge)
        self.incoming[edge.target_id].append(edge)
        return True

    def merge(self, other: "ComponentGraph") -> None:
        """Add the nodes and edges of another graph that are not present yet."""
        for node in other.nodes.values():
            self.add_node(node)
        for edge in other.edges.values():
            self.add_edge(edge, allow_dangling=True)

    def copy(self) -> "ComponentGraph":
        """Clone the graph. Node and edge values are immutable and shared."""
        cloned = ComponentGraph(metadata=dict(self.metadata))
        for node in self.nodes.values():
            cloned.add_node(node)
        for edge in self.edges.values():
            cloned.add_edge(edge, allow_dangling=True)
        return cloned

    # === Queries ===

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def has_edge(self, source_id: str, target_id: str) -> bool:
        return edge_id(source_id, target_id) in self.edges

    def outgoing_edges(self, node_id: str) -> List[GraphEdge]:
        """Edges from a component to the components it depends on."""
        return list(self.outgoing.get(node_id, ()))

    def incoming_edges(self, node_id: str) -> List[GraphEdge]:
        """Edges from dependents into a component."""
        return list(self.incoming.get(node_id, ()))

    def dependencies(self, node_id: str) -> List[GraphNode]:
        """Nodes this component depends on directly (dangling targets omitted)."""
        return [self.nodes[e.target_id] for e in self.outgoing.get(node_id, ()) if e.target_id in self.nodes]

    def dependents(self, node_id: str) -> List[GraphNode]:
        """Nodes that depend on this component directly."""
        return [self.nodes[e.source_id] for e in self.incoming.get(node_id, ()) if e.source_id in self.nodes]

    def find_nodes_by_ref(self, domain: str, flow: str, key: str) -> List[GraphNode]:
        """All versions of one logical component."""
        prefix = f"{domain.lower()}/{flow.lower()}/{key.lower()}"
        return [node for node in self.nodes.values() if logical_id(node.ref) == prefix]

    def dangling_edges(self) -> List[GraphEdge]:
        """Edges whose target id has no node."""
        return [edge for edge in self.edges.values() if edge.target_id not in self.nodes]

    def stats(self) -> Dict[str, Any]:
        """Get graph statistics."""
        nodes_by_type: Dict[str, int] = defaultdict(int)
        nodes_by_source: Dict[str, int] = defaultdict(int)
        for node in self.nodes.values():
            nodes_by_type[node.type] += 1
            nodes_by_source[node.source] += 1

        return {
            'node_count': len(self.nodes),
            'edge_count': len(self.edges),
            'dangling_edge_count': len(self.dangling_edges()),
            'nodes_by_type': dict(nodes_by_type),
            'nodes_by_source': dict(nodes_by_source),
        }

    def transitive_dependencies(self, node_id: str) -> List[GraphNode]:
        """
        All direct and indirect dependencies of a node, dependencies first.

        Cycles are tolerated: a node already visited is not expanded again.
        """
        result: List[GraphNode] = []
        seen: Set[str] = set()
        visited: Set[str] = {node_id}

        def visit(current: str) -> None:
            for dep in self.dependencies(current):
                if dep.id in visited:
                    continue
                visited.add(dep.id)
                visit(dep.id)
                if dep.id not in seen:
                    seen.add(dep.id)
                    result.append(dep)

        if node_id in self.nodes:
            visit(node_id)
        return result

    def deployment_order(self, node_ids: Iterable[str]) -> List[GraphNode]:
        """
        Order the given nodes so dependencies come before dependents.

        Only dependencies inside ``node_ids`` are considered. A back-edge of a
        cycle is skipped, so cyclic sets still produce a complete ordering.
        """
        wanted = list(dict.fromkeys(node_ids))
        wanted_set = set(wanted)
        ordered: List[GraphNode] = []
        done: Set[str] = set()
        visiting: Set[str] = set()

        def visit(current: str) -> None:
            if current in done or current in visiting:
                return
            visiting.add(current)
            for dep in self.dependencies(current):
                if dep.id in wanted_set:
                    visit(dep.id)
            visiting.discard(current)
            done.add(current)
            node = self.nodes.get(current)
            if node is not None:
                ordered.append(node)

        for node_id in wanted:
            visit(node_id)
        return ordered

    # === Serialization ===

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a snapshot dictionary."""
        return {
            'metadata': dict(self.metadata),
            'nodes': [node.model_dump(mode='json', by_alias=True) for node in self.nodes.values()],
            'edges': [edge.model_dump(mode='json', by_alias=True) for edge in self.edges.values()],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComponentGraph":
        """
        Rebuild a graph from ``to_dict`` output.

        Raises:
            ValidationError: If a node or edge is malformed
        """
        graph = cls(metadata=data.get('metadata') or {})
        try:
            for raw_node in data.get('nodes', []):
                graph.add_node(GraphNode.model_validate(raw_node))
            for raw_edge in data.get('edges', []):
                graph.add_edge(GraphEdge.model_validate(raw_edge), allow_dangling=True)
        except (ValueError, GraphIntegrityError) as e:
            raise ValidationError(f"Invalid graph snapshot: {e}") from e
        return graph

    @classmethod
    def from_json(cls, text: str) -> "ComponentGraph":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid graph snapshot JSON: {e}") from e
        return cls.from_dict(data)

    def to_networkx(self) -> nx.DiGraph:
        """
        Export as a ``networkx.DiGraph`` with scalar node/edge attributes.

        Dangling targets become bare nodes flagged ``missing=True``.
        """
        G = nx.DiGraph(**{k: v for k, v in self.metadata.items() if isinstance(v, (str, int, float, bool))})
        for node in self.nodes.values():
            G.add_node(
                node.id,
                key=node.ref.key,
                domain=node.ref.domain,
                flow=node.ref.flow,
                version=node.ref.version,
                type=node.type,
                label=node.label or node.ref.key,
                source=node.source,
                api_hash=node.api_hash or "",
                config_hash=node.config_hash or "",
                tags=",".join(node.tags),
                missing=False,
            )
        for edge in self.edges.values():
            if edge.target_id not in G:
                G.add_node(edge.target_id, missing=True)
            G.add_edge(
                edge.source_id,
                edge.target_id,
                id=edge.id,
                type=edge.type,
                required=edge.required,
                version_range=edge.version_range or "",
            )
        return G


def build_graph(nodes: Iterable[GraphNode], edges: Iterable[GraphEdge] = (),
                metadata: Optional[Dict[str, Any]] = None) -> ComponentGraph:
    """Convenience constructor used by adapters and tests."""
    graph = ComponentGraph(metadata=metadata)
    for node in nodes:
        graph.add_node(node)
    for edge in edges:
        graph.add_edge(edge, allow_dangling=True)
    return graph


__all__ = ["ComponentGraph", "build_graph"]
