"""Tests for the graph builder service."""

import json
from pathlib import Path

import pytest

from compgraph.services.diff_engine import DiffEngine
from compgraph.services.graph_builder import (
    BuildOptions,
    ComponentFileRepository,
    ComponentRecord,
    GraphBuilderService,
)
from compgraph.shared import ConfigurationError, ProcessingError, ReferenceResolutionError, Settings


WORKFLOW_ID = "core/sys-flows/order-flow@1.0.0"
TASK_ID = "core/sys-tasks/invalidate-cache@1.0.0"
SCHEMA_ID = "core/sys-schemas/order@1.2.0"
VIEW_ID = "core/sys-views/order-form@1.0.0"


@pytest.fixture
def builder(settings) -> GraphBuilderService:
    return GraphBuilderService(settings)


def workflow_record(key: str, refs, origin: str = None) -> ComponentRecord:
    """A workflow whose single state runs the given task references."""
    return ComponentRecord(
        component_type="workflow",
        data={
            "key": key, "domain": "core", "version": "1.0.0",
            "attributes": {"states": [{"key": "s", "onEntries": [{"task": ref} for ref in refs]}]},
        },
        origin=origin or f"records:{key}",
    )


def task_record(key: str, **attributes) -> ComponentRecord:
    return ComponentRecord(
        component_type="task",
        data={"key": key, "domain": "core", "version": "1.0.0", "attributes": attributes},
        origin=f"records:{key}",
    )


class TestLocalBuild:
    """Tests for building from a workspace directory."""

    def test_builds_nodes_and_edges(self, builder, workspace) -> None:
        """Every component becomes a node and every reference an edge."""
        result = builder.build_local_graph(workspace)
        graph = result.graph

        assert set(graph.nodes) == {WORKFLOW_ID, TASK_ID, SCHEMA_ID, VIEW_ID}
        assert {edge.target_id for edge in graph.outgoing_edges(WORKFLOW_ID)} == {TASK_ID, SCHEMA_ID, VIEW_ID}
        assert graph.dangling_edges() == []

    def test_node_contents(self, builder, workspace) -> None:
        """Nodes carry label, unwrapped definition, hashes and file path."""
        graph = builder.build_local_graph(workspace).graph
        workflow = graph.get_node(WORKFLOW_ID)
        task = graph.get_node(TASK_ID)

        assert workflow.label == "Order Flow"
        assert workflow.type == "workflow"
        assert "states" in workflow.definition
        assert workflow.api_hash and workflow.config_hash
        assert task.definition["config"] == {"url": "http://cache/invalidate"}
        assert task.get_metadata("file_path").endswith("invalidate-cache.json")

    def test_workflow_references_normalized(self, builder, workspace) -> None:
        """Embedded references are stored in structured form."""
        graph = builder.build_local_graph(workspace).graph
        state = graph.get_node(WORKFLOW_ID).definition["states"][0]
        assert state["onEntries"][0]["task"] == {
            "key": "invalidate-cache", "domain": "core", "flow": "sys-tasks", "version": "1.0.0",
        }
        assert state["view"]["key"] == "order-form"

    def test_version_range_on_edge(self, builder, workspace) -> None:
        """A versionRange next to a reference lands on the edge."""
        graph = builder.build_local_graph(workspace).graph
        edge = graph.edges[f"{WORKFLOW_ID}->{SCHEMA_ID}"]
        assert edge.version_range == "^1.0.0"
        assert edge.type == "schema"

    def test_report_counts(self, builder, workspace) -> None:
        """The report accounts for every discovered file."""
        report = builder.build_local_graph(workspace).report
        assert report.files_discovered == 4
        assert report.nodes_created == 4
        assert report.skipped_count == 0
        assert report.edges_created + report.edges_reconciled == 3
        assert report.duration_ms >= 0

    def test_skips_bad_files(self, builder, workspace, write_json) -> None:
        """Invalid files are skipped and recorded, never fatal."""
        (workspace / "Tasks" / "broken.json").write_text("{nope", encoding="utf-8")
        write_json(workspace / "Tasks" / "no-version.json", {"key": "x", "domain": "core"})
        write_json(workspace / "Tasks" / "list.json", [1, 2])

        result = builder.build_local_graph(workspace)
        reasons = {Path(s.origin).name: s.reason for s in result.report.skipped}

        assert reasons == {
            "broken.json": "invalid_json",
            "no-version.json": "missing_fields",
            "list.json": "not_an_object",
        }
        assert result.report.files_discovered == result.report.nodes_created + result.report.skipped_count

    def test_duplicate_first_wins(self, builder, workspace, write_json) -> None:
        """A later file with an existing id is skipped as a duplicate."""
        write_json(workspace / "Tasks" / "zz-copy.json", {
            "key": "invalidate-cache", "domain": "core", "version": "1.0.0", "flow": "sys-tasks",
            "attributes": {"config": {"url": "http://other"}},
        })
        result = builder.build_local_graph(workspace)
        assert result.graph.get_node(TASK_ID).definition["config"] == {"url": "http://cache/invalidate"}
        assert [s.reason for s in result.report.skipped] == ["duplicate_id"]

    def test_nested_directories_and_exclusions(self, builder, workspace, write_json) -> None:
        """Nested files are found; hidden dirs and diagram side-files are not."""
        write_json(workspace / "Tasks" / "nested" / "deep.json", {"key": "deep", "domain": "core", "version": "1.0.0"})
        write_json(workspace / "Tasks" / ".hidden" / "secret.json", {"key": "secret", "domain": "core", "version": "1.0.0"})
        graph = builder.build_local_graph(workspace).graph
        assert "core/sys-tasks/deep@1.0.0" in graph
        assert "core/sys-tasks/secret@1.0.0" not in graph

    def test_include_types(self, builder, workspace) -> None:
        """Only the selected types are scanned."""
        options = BuildOptions(base_path=workspace, include_types=["task", "schema"])
        graph = builder.build_local_graph(options).graph
        assert set(graph.nodes) == {TASK_ID, SCHEMA_ID}

    def test_hashing_can_be_disabled(self, builder, workspace) -> None:
        """No hashes are computed when hashing is off."""
        graph = builder.build_local_graph(BuildOptions(base_path=workspace, compute_hashes=False)).graph
        assert all(node.api_hash is None and node.config_hash is None for node in graph)

    def test_missing_dependency_kept_as_dangling_edge(self, builder, workspace) -> None:
        """References to components that never appear stay as dangling edges."""
        (workspace / "Tasks" / "invalidate-cache.json").unlink()
        result = builder.build_local_graph(workspace)
        assert [e.target_id for e in result.graph.dangling_edges()] == [TASK_ID]
        assert result.report.dangling_edges == 1

    def test_progress_callback(self, builder, workspace, write_json) -> None:
        """The callback sees every discovered file with its outcome."""
        write_json(workspace / "Views" / "bad.json", {"key": "bad"})
        seen = []
        builder.build_local_graph(workspace, on_file=lambda origin, outcome: seen.append((Path(origin).name, outcome)))
        assert ("bad.json", "missing_fields") in seen
        assert ("order-flow.json", "added") in seen
        assert len(seen) == 5

    def test_missing_root_raises(self, builder, tmp_path) -> None:
        """A missing workspace root means the build cannot run."""
        with pytest.raises(ProcessingError):
            builder.build_local_graph(tmp_path / "nope")

    def test_strict_mode_raises(self, builder, workspace, write_json) -> None:
        """Strict builds abort on an unresolvable reference."""
        write_json(workspace / "Workflows" / "broken-flow.json", {
            "key": "broken-flow", "domain": "core", "version": "1.0.0",
            "attributes": {"states": [{"key": "s", "task": {"ref": "Tasks/ghost.json"}}]},
        })
        with pytest.raises(ReferenceResolutionError):
            builder.build_local_graph(BuildOptions(base_path=workspace, strict=True))

    def test_sequential_and_parallel_reads_agree(self, workspace) -> None:
        """The thread pool does not change the result."""
        sequential = GraphBuilderService(Settings(_env_file=None, max_workers=1)).build_local_graph(workspace)
        parallel = GraphBuilderService(Settings(_env_file=None, max_workers=8)).build_local_graph(workspace)
        assert list(sequential.graph.nodes) == list(parallel.graph.nodes)
        assert set(sequential.graph.edges) == set(parallel.graph.edges)


class TestRecordBuild:
    """Tests for building from in-memory records and two-pass reconciliation."""

    def test_file_reference_resolves_once_with_custom_defaults(self) -> None:
        """The same file reference gives one id wherever it appears in a workflow."""
        builder = GraphBuilderService(Settings(_env_file=None, default_domain="banking", max_workers=1))
        record = ComponentRecord(
            component_type="workflow",
            data={
                "key": "w", "domain": "banking", "version": "1.0.0",
                "attributes": {"states": [{
                    "key": "s",
                    "task": {"ref": "Tasks/foo.json"},
                    "mappings": [{"ref": "Tasks/foo.json"}],
                }]},
            },
            origin="records:w",
        )
        graph = builder.build_from_records([record]).graph

        assert list(graph.edges) == ["banking/sys-flows/w@1.0.0->banking/sys-tasks/foo@1.0.0"]
        missing = DiffEngine(builder.settings).check(graph).of_type("missing-dependency")
        assert len(missing) == 1

    def test_forward_references_reconciled(self, builder) -> None:
        """An edge to a component ingested later is added in the second pass."""
        records = [workflow_record("w", ["core/sys-tasks/t@1.0.0"]), task_record("t")]
        result = builder.build_from_records(records)

        assert result.graph.has_edge("core/sys-flows/w@1.0.0", "core/sys-tasks/t@1.0.0")
        assert result.report.edges_deferred == 1
        assert result.report.edges_reconciled == 1
        assert result.report.dangling_edges == 0

    def test_discovery_order_does_not_change_edges(self, builder) -> None:
        """Every permutation of the same records yields the same edge set."""
        records = [
            workflow_record("w1", ["core/sys-tasks/t1@1.0.0", "core/sys-flows/w2@1.0.0"]),
            workflow_record("w2", ["core/sys-tasks/t2@1.0.0", "core/sys-tasks/missing@1.0.0"]),
            task_record("t1"),
            task_record("t2"),
        ]
        forward = builder.build_from_records(records).graph
        backward = builder.build_from_records(list(reversed(records))).graph

        assert set(forward.nodes) == set(backward.nodes)
        assert set(forward.edges) == set(backward.edges)
        assert len(forward.edges) == 4

    def test_reconciliation_does_not_duplicate(self, builder) -> None:
        """Edges added in the first pass are not added again."""
        records = [task_record("t"), workflow_record("w", ["core/sys-tasks/t@1.0.0"])]
        result = builder.build_from_records(records)
        assert result.report.edges_created == 1
        assert result.report.edges_reconciled == 0
        assert len(result.graph.edges) == 1

    def test_encodings_hash_identically(self, builder) -> None:
        """File and structured references produce the same workflow hashes."""
        by_file = builder.build_from_records([workflow_record("w", [{"ref": "Tasks/foo.json"}])]).graph
        by_struct = builder.build_from_records([workflow_record("w", [
            {"key": "foo", "domain": "core", "flow": "sys-tasks", "version": "1.0.0"},
        ])]).graph

        a = by_file.get_node("core/sys-flows/w@1.0.0")
        b = by_struct.get_node("core/sys-flows/w@1.0.0")
        assert a.definition == b.definition
        assert a.config_hash == b.config_hash
        assert set(by_file.edges) == set(by_struct.edges)

    def test_build_from_listing(self, builder) -> None:
        """Listings keyed by type build runtime nodes."""
        result = builder.build_from_listing({
            "task": [{"key": "t", "domain": "core", "version": "1.0.0"}],
            "workflow": [{"key": "w", "domain": "core", "version": "1.0.0",
                          "attributes": {"functions": ["core/sys-tasks/t@1.0.0"]}}],
        })
        assert {node.source for node in result.graph} == {"runtime"}
        assert result.graph.has_edge("core/sys-flows/w@1.0.0", "core/sys-tasks/t@1.0.0")

    def test_unknown_listing_type(self, builder) -> None:
        """Unknown component types are a configuration error."""
        with pytest.raises(ConfigurationError):
            builder.build_from_listing({"widget": []})


class TestComponentFileRepository:
    """Tests for discovery and reads."""

    def test_scan_is_sorted_and_filtered(self, settings, tmp_path, write_json) -> None:
        """Files come back sorted, with exclusions applied."""
        for name in ("b.json", "a.json", "c.diagram.json", "notes.txt"):
            write_json(tmp_path / name, {})
        write_json(tmp_path / "node_modules" / "x.json", {})
        found = ComponentFileRepository(settings).scan_json_files(tmp_path)
        assert [p.name for p in found] == ["a.json", "b.json"]

    def test_max_depth(self, tmp_path, write_json) -> None:
        """Recursion stops at the configured depth."""
        write_json(tmp_path / "top.json", {})
        write_json(tmp_path / "one" / "mid.json", {})
        write_json(tmp_path / "one" / "two" / "deep.json", {})
        repository = ComponentFileRepository(Settings(_env_file=None, max_scan_depth=1))
        assert [p.name for p in repository.scan_json_files(tmp_path)] == ["mid.json", "top.json"]

    def test_read_components_keeps_order(self, settings, tmp_path, write_json) -> None:
        """Parallel reads return in input order."""
        paths = [write_json(tmp_path / f"{i:02d}.json", {"n": i}) for i in range(10)]
        outcomes = ComponentFileRepository(settings).read_components(paths)
        assert [data["n"] for _, data, _, _ in outcomes] == list(range(10))
