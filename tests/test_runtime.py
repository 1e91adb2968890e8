"""Tests for the snapshot runtime adapter."""

import json

import pytest

from compgraph.services.diff_engine import DiffEngine
from compgraph.services.graph_builder import GraphBuilderService
from compgraph.services.runtime import RuntimeAdapter, SnapshotRuntimeAdapter, instance_to_component
from compgraph.shared import SnapshotError

TASK_ID = "core/sys-tasks/invalidate-cache@1.0.0"


def task_instance(**overrides):
    instance = {
        "id": "3f2c",
        "key": "invalidate-cache",
        "domain": "core",
        "flow": "sys-tasks",
        "flowVersion": "1.0.0",
        "etag": "W/1",
        "attributes": {"type": "6", "config": {"url": "http://cache/invalidate"}, "parameters": ["id"]},
    }
    instance.update(overrides)
    return instance


def workflow_instance(task_ref, domain="core"):
    return {
        "key": "order-flow",
        "domain": domain,
        "flow": "sys-flows",
        "flowVersion": "1.0.0",
        "attributes": {
            "type": "F",
            "states": [{"key": "created", "onEntries": [{"task": task_ref}]}],
        },
    }


@pytest.fixture
def listing_file(tmp_path, write_json):
    return write_json(tmp_path / "runtime.json", {
        "metadata": {"exportedAt": "2026-01-01"},
        "task": [task_instance()],
        "workflow": [workflow_instance("core/sys-tasks/invalidate-cache@1.0.0")],
    })


class TestInstanceMapping:
    """Tests for instance_to_component."""

    def test_envelope_fields(self) -> None:
        """Identity comes from the envelope when the definition lacks it."""
        component = instance_to_component(task_instance())
        assert component["key"] == "invalidate-cache"
        assert component["domain"] == "core"
        assert component["flow"] == "sys-tasks"
        assert component["version"] == "1.0.0"
        assert component["attributes"]["config"] == {"url": "http://cache/invalidate"}

    def test_definition_wins(self) -> None:
        """Identifying fields inside the definition take precedence."""
        instance = task_instance(flowVersion="9.9.9")
        instance["attributes"] = {**instance["attributes"], "version": "2.0.0", "key": "renamed"}
        component = instance_to_component(instance)
        assert (component["key"], component["version"]) == ("renamed", "2.0.0")

    def test_version_fallback(self) -> None:
        """Without any version the default is used."""
        instance = task_instance()
        del instance["flowVersion"]
        assert instance_to_component(instance)["version"] == "1.0.0"

    @pytest.mark.parametrize("instance", [
        None, "text", {"key": "k", "domain": "core"}, {"key": "k", "domain": "core", "attributes": {}},
    ])
    def test_no_definition(self, instance) -> None:
        """Instances without a definition are dropped."""
        assert instance_to_component(instance) is None


class TestSnapshotAdapter:
    """Tests for SnapshotRuntimeAdapter."""

    def test_is_runtime_adapter(self, listing_file, settings) -> None:
        """The adapter satisfies the runtime protocol."""
        assert isinstance(SnapshotRuntimeAdapter(listing_file, settings), RuntimeAdapter)

    def test_listing(self, listing_file, settings) -> None:
        """Instance listings become runtime nodes and edges."""
        graph = SnapshotRuntimeAdapter(listing_file, settings).fetch_graph("prod")
        assert set(graph.nodes) == {TASK_ID, "core/sys-flows/order-flow@1.0.0"}
        assert graph.has_edge("core/sys-flows/order-flow@1.0.0", TASK_ID)
        assert graph.metadata["source"] == "runtime"
        assert graph.metadata["environment_id"] == "prod"

        node = graph.get_node(TASK_ID)
        assert node.source == "runtime"
        assert node.metadata["runtime_id"] == "3f2c"
        assert node.metadata["etag"] == "W/1"

    def test_hashes_optional(self, listing_file, settings) -> None:
        """Listings are hashed only on request."""
        adapter = SnapshotRuntimeAdapter(listing_file, settings)
        assert adapter.fetch_graph("prod").get_node(TASK_ID).api_hash is None
        assert adapter.fetch_graph("prod", compute_hashes=True).get_node(TASK_ID).api_hash

    def test_runtime_matches_workspace(self, listing_file, workspace, settings) -> None:
        """A deployed copy of a workspace task hashes identically."""
        local = GraphBuilderService(settings).build_local_graph(workspace).graph
        runtime = SnapshotRuntimeAdapter(listing_file, settings).fetch_graph(
            "prod", include_types=["task"], compute_hashes=True
        )
        assert local.get_node(TASK_ID).api_hash == runtime.get_node(TASK_ID).api_hash
        assert local.get_node(TASK_ID).config_hash == runtime.get_node(TASK_ID).config_hash
        delta = DiffEngine(settings).diff(local, runtime)
        assert delta.for_component(TASK_ID) == []

    def test_filters(self, tmp_path, write_json, settings) -> None:
        """Domain and type filters drop instances before building."""
        path = write_json(tmp_path / "runtime.json", {
            "task": [task_instance(), task_instance(domain="billing", attributes={"domain": "billing", "type": "6"})],
            "workflow": [workflow_instance("core/sys-tasks/invalidate-cache@1.0.0")],
        })
        adapter = SnapshotRuntimeAdapter(path, settings)
        assert len(adapter.fetch_graph("prod", domain="billing")) == 1
        assert list(adapter.fetch_graph("prod", include_types=["workflow"]).nodes) == [
            "core/sys-flows/order-flow@1.0.0"
        ]

    def test_serialized_graph(self, tmp_path, chain_graph, settings) -> None:
        """A saved graph snapshot loads as-is with runtime metadata."""
        path = tmp_path / "graph.json"
        path.write_text(chain_graph.to_json(), encoding="utf-8")
        graph = SnapshotRuntimeAdapter(path, settings).fetch_graph("staging")
        assert sorted(graph.nodes) == sorted(chain_graph.nodes)
        assert len(graph.edges) == 2
        assert graph.metadata["environment_id"] == "staging"

        tasks_only = SnapshotRuntimeAdapter(path, settings).fetch_graph("staging", include_types=["task"])
        assert list(tasks_only.nodes) == ["core/sys-tasks/x@1.0.0"]
        assert len(tasks_only.edges) == 0

    def test_directory_mode(self, tmp_path, write_json, settings) -> None:
        """A directory holds one snapshot per environment."""
        write_json(tmp_path / "snapshots" / "prod.json", {"task": [task_instance()]})
        write_json(tmp_path / "snapshots" / "test.json", {"task": []})
        adapter = SnapshotRuntimeAdapter(tmp_path / "snapshots", settings)
        assert adapter.snapshot_path("prod") == tmp_path / "snapshots" / "prod.json"
        assert len(adapter.fetch_graph("prod")) == 1
        assert len(adapter.fetch_graph("test")) == 0
        assert adapter.test_connection("prod") is True
        assert adapter.test_connection("dev") is False

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps([1, 2]),
        json.dumps({"tasks_v2": []}),
        json.dumps({}),
        json.dumps({"task": {"not": "a list"}}),
    ])
    def test_bad_snapshots(self, tmp_path, settings, content) -> None:
        """Unreadable or unrecognized snapshots raise SnapshotError."""
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(SnapshotError):
            SnapshotRuntimeAdapter(path, settings).fetch_graph("prod")

    def test_missing_file(self, tmp_path, settings) -> None:
        """A missing snapshot is a SnapshotError."""
        with pytest.raises(SnapshotError):
            SnapshotRuntimeAdapter(tmp_path / "nope.json", settings).fetch_graph("prod")
