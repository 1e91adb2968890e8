"""Tests for impact analysis."""

import pytest

from compgraph.services.impact_analysis import ImpactAnalysisOptions, ImpactAnalysisService
from compgraph.services.impact_analysis.service import classify_risk
from compgraph.shared import ComponentGraph, Settings

X = "core/sys-tasks/x@1.0.0"
Y = "core/sys-flows/y@1.0.0"
Z = "core/sys-flows/z@1.0.0"


@pytest.fixture
def service(settings) -> ImpactAnalysisService:
    return ImpactAnalysisService(settings)


@pytest.fixture
def hub_graph(make_node, make_edge) -> ComponentGraph:
    """One shared task with six direct dependents and one with two."""
    graph = ComponentGraph()
    hub = make_node("hub")
    minor = make_node("minor")
    graph.add_node(hub)
    graph.add_node(minor)
    for index in range(6):
        flow = make_node(f"flow-{index}", component_type="workflow")
        graph.add_node(flow)
        graph.add_edge(make_edge(flow, hub))
        if index < 2:
            graph.add_edge(make_edge(flow, minor))
    return graph


class TestImpactCone:
    """Tests for impact cone traversal."""

    def test_chain_depths(self, service, chain_graph) -> None:
        """Changing x affects y at depth 1 and z at depth 2."""
        cone = service.impact_cone(chain_graph, [X])
        assert cone.affected_ids == [X, Y, Z]
        assert cone.depths == {X: 0, Y: 1, Z: 2}
        assert cone.stats.total_affected == 3
        assert cone.stats.max_depth == 2
        assert cone.stats.by_type == {"task": 1, "workflow": 2}

    def test_top_of_chain_affects_only_itself(self, service, chain_graph) -> None:
        """Nothing depends on z."""
        cone = service.impact_cone(chain_graph, Z)
        assert cone.affected_ids == [Z]
        assert cone.dependency_paths == []

    def test_paths(self, service, chain_graph) -> None:
        """Each non-start node records the path back to its start."""
        cone = service.impact_cone(chain_graph, [X])
        path = cone.path_to(Z)
        assert path.path == [X, Y, Z]
        assert path.depth == 2
        assert path.path_string == "x@1.0.0 → y@1.0.0 → z@1.0.0"
        assert cone.path_to(X) is None

    def test_paths_disabled(self, service, chain_graph) -> None:
        """Paths are optional."""
        cone = service.impact_cone(chain_graph, [X], ImpactAnalysisOptions(include_paths=False))
        assert cone.dependency_paths == []
        assert len(cone.affected_components) == 3

    def test_max_depth(self, service, chain_graph) -> None:
        """Nodes beyond the depth limit are not reported."""
        cone = service.impact_cone(chain_graph, [X], ImpactAnalysisOptions(max_depth=1))
        assert cone.affected_ids == [X, Y]
        assert service.impact_cone(chain_graph, [X], ImpactAnalysisOptions(max_depth=0)).affected_ids == [X]

    def test_include_types_filters_without_pruning(self, service, chain_graph) -> None:
        """Filtered-out nodes are still traversed through."""
        cone = service.impact_cone(chain_graph, [X], ImpactAnalysisOptions(include_types=["workflow"]))
        assert cone.affected_ids == [Y, Z]

    def test_unknown_start_ids_ignored(self, service, chain_graph) -> None:
        """Ids not in the graph contribute nothing."""
        cone = service.impact_cone(chain_graph, ["core/sys-tasks/ghost@1.0.0", Y])
        assert cone.start_ids == [Y]
        assert cone.affected_ids == [Y, Z]

    def test_multiple_start_ids(self, service, chain_graph) -> None:
        """Each node appears once with its smallest depth."""
        cone = service.impact_cone(chain_graph, [X, Y])
        assert cone.depths == {X: 0, Y: 0, Z: 1}

    def test_cycle_terminates(self, service, make_node, make_edge) -> None:
        """A cyclic graph is traversed once per node."""
        a, b = make_node("a", component_type="workflow"), make_node("b", component_type="workflow")
        graph = ComponentGraph()
        graph.add_node(a)
        graph.add_node(b)
        graph.add_edge(make_edge(a, b, dependency_type="subflow"))
        graph.add_edge(make_edge(b, a, dependency_type="subflow"))
        assert service.impact_cone(graph, [a.id]).affected_ids == [a.id, b.id]

    def test_invalid_options(self) -> None:
        """Negative depth is rejected."""
        with pytest.raises(ValueError):
            ImpactAnalysisOptions(max_depth=-1)


class TestDependents:
    """Tests for the helpers built on the cone."""

    def test_direct_and_all_dependents(self, service, chain_graph) -> None:
        """Direct dependents are one hop; all dependents exclude the start."""
        assert [n.id for n in service.direct_dependents(chain_graph, X)] == [Y]
        assert [n.id for n in service.all_dependents(chain_graph, X)] == [Y, Z]
        assert service.all_dependents(chain_graph, Z) == []

    def test_critical_components(self, service, hub_graph) -> None:
        """Components above the threshold are listed by dependent count."""
        critical = service.find_critical_components(hub_graph, threshold=2)
        assert [(c.node.ref.key, c.dependent_count) for c in critical] == [("hub", 6), ("minor", 2)]
        assert [c.node.ref.key for c in service.find_critical_components(hub_graph)] == ["hub"]

    def test_shortest_path(self, service, chain_graph) -> None:
        """The shortest dependent chain, or None."""
        assert service.find_shortest_path(chain_graph, X, Z) == [X, Y, Z]
        assert service.find_shortest_path(chain_graph, Z, X) is None
        assert service.find_shortest_path(chain_graph, X, X) == [X]


class TestDeploymentRisk:
    """Tests for risk classification."""

    @pytest.mark.parametrize("count,risk", [
        (0, "low"), (5, "low"), (6, "medium"), (15, "medium"),
        (16, "high"), (30, "high"), (31, "critical"),
    ])
    def test_boundaries(self, count, risk) -> None:
        """Thresholds are inclusive upper bounds."""
        assert classify_risk(count).risk == risk

    def test_reason(self) -> None:
        """The reason names the count."""
        assert classify_risk(1).reason == "Only 1 component(s) affected"
        assert "very high impact" in classify_risk(40).reason

    def test_estimate_uses_settings(self, chain_graph) -> None:
        """Thresholds come from settings."""
        tight = ImpactAnalysisService(Settings(_env_file=None, risk_thresholds=(1, 2, 2)))
        risk = tight.estimate_deployment_risk(chain_graph, [X])
        assert risk.affected_count == 3
        assert risk.risk == "critical"

    def test_estimate_default(self, service, hub_graph) -> None:
        """Seven affected components are a medium risk."""
        risk = service.estimate_deployment_risk(hub_graph, ["core/sys-tasks/hub@1.0.0"])
        assert (risk.risk, risk.affected_count) == ("medium", 7)
