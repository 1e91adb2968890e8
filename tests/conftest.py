"""Pytest fixtures for compgraph tests."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest

from compgraph.shared import (
    COMPONENT_FLOWS,
    ComponentGraph,
    ComponentRef,
    GraphEdge,
    GraphNode,
    Settings,
)


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from any .env file or environment."""
    return Settings(_env_file=None, max_workers=2)


@pytest.fixture
def make_node() -> Callable[..., GraphNode]:
    """Factory for graph nodes keyed by component key."""

    def factory(
        key: str,
        component_type: str = "task",
        version: str = "1.0.0",
        domain: str = "core",
        flow: Optional[str] = None,
        **fields: Any,
    ) -> GraphNode:
        ref = ComponentRef(
            domain=domain,
            flow=flow or COMPONENT_FLOWS[component_type],
            key=key,
            version=version,
        )
        return GraphNode(ref=ref, type=component_type, **fields)

    return factory


@pytest.fixture
def make_edge() -> Callable[..., GraphEdge]:
    """Factory for dependency edges between two nodes."""

    def factory(source: GraphNode, target: Any, dependency_type: str = "task", **fields: Any) -> GraphEdge:
        target_id = target.id if isinstance(target, GraphNode) else target
        return GraphEdge(source_id=source.id, target_id=target_id, type=dependency_type, **fields)

    return factory


@pytest.fixture
def chain_graph(make_node, make_edge) -> ComponentGraph:
    """x <- y <- z: y depends on x, z depends on y."""
    x = make_node("x")
    y = make_node("y", component_type="workflow")
    z = make_node("z", component_type="workflow")
    graph = ComponentGraph()
    for node in (x, y, z):
        graph.add_node(node)
    graph.add_edge(make_edge(y, x))
    graph.add_edge(make_edge(z, y, dependency_type="subflow"))
    return graph


@pytest.fixture
def write_json() -> Callable[[Path, Dict[str, Any]], Path]:
    """Write a JSON document, creating parent directories."""

    def writer(path: Path, data: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return writer


def component(key: str, version: str = "1.0.0", domain: str = "core", **fields: Any) -> Dict[str, Any]:
    return {"key": key, "domain": domain, "version": version, **fields}


@pytest.fixture
def workspace(tmp_path: Path, write_json) -> Path:
    """
    A small workspace: one workflow referencing a task (file ref), a schema
    (structured ref with a version range) and a view (compact string).
    """
    write_json(tmp_path / "Tasks" / "invalidate-cache.json", component(
        "invalidate-cache",
        flow="sys-tasks",
        attributes={"type": "6", "config": {"url": "http://cache/invalidate"}, "parameters": ["id"]},
    ))
    write_json(tmp_path / "Schemas" / "order.json", component(
        "order",
        version="1.2.0",
        flow="sys-schemas",
        attributes={"schema": {"type": "object", "properties": {"id": {"type": "string"}}}},
    ))
    write_json(tmp_path / "Views" / "order-form.json", component(
        "order-form",
        flow="sys-views",
        attributes={"view": {"type": "form"}},
    ))
    write_json(tmp_path / "Workflows" / "order-flow.json", component(
        "order-flow",
        flow="sys-flows",
        attributes={
            "type": "F",
            "labels": [{"language": "en-US", "label": "Order Flow"}],
            "startTransition": {"key": "start", "target": "created", "triggerType": 0},
            "states": [
                {
                    "key": "created",
                    "stateType": 1,
                    "onEntries": [{"order": 1, "task": {"ref": "Tasks/invalidate-cache.json"}}],
                    "view": "core/sys-views/order-form@1.0.0",
                    "transitions": [
                        {
                            "key": "submit",
                            "target": "done",
                            "triggerType": 0,
                            "schema": {
                                "key": "order", "domain": "core", "flow": "sys-schemas",
                                "version": "1.2.0", "versionRange": "^1.0.0",
                            },
                        }
                    ],
                },
                {"key": "done", "stateType": 2, "transitions": []},
            ],
        },
    ))
    # Layout side-file, never read as a component
    write_json(tmp_path / "Workflows" / "order-flow.diagram.json", {"nodePos": {}})
    return tmp_path
