"""
Command-line interface for compgraph.

Usage:
    compgraph build ./workspace --output graph.json
    compgraph check ./workspace
    compgraph diff ./workspace --runtime snapshots/ --environment prod
    compgraph impact ./workspace core/sys-tasks/invalidate-cache@1.0.0
    compgraph export ./workspace --output graph.graphml --format graphml

Exit codes: 0 success, 1 error-severity violations found, 2 the analysis
could not run.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import networkx as nx

from . import __version__
from .shared import CompGraphError, ComponentType, get_settings, setup_logging
from .services.graph_builder import BuildOptions, BuildResult, GraphBuilderService
from .services.diff_engine import DiffEngine, GraphDelta
from .services.impact_analysis import ImpactAnalysisOptions, ImpactAnalysisService
from .services.runtime import SnapshotRuntimeAdapter


TYPE_CHOICES = [t.value for t in ComponentType]
SEVERITY_ICONS = {"error": "❌", "warning": "⚠️", "info": "ℹ️"}


def _build(args, scan_all_types: bool = False) -> BuildResult:
    include_types = None if scan_all_types else getattr(args, 'types', None) or None
    options = BuildOptions(
        base_path=Path(args.path),
        include_types=include_types,
        compute_hashes=False if getattr(args, 'no_hashes', False) else None,
        strict=True if args.strict else None,
    )
    return GraphBuilderService().build_local_graph(options)


def _print_build_summary(result: BuildResult) -> None:
    report = result.report
    print(f"✅ Built graph: {len(result.graph.nodes)} nodes, {len(result.graph.edges)} edges")
    print(f"📊 {report.files_discovered} files discovered, {report.nodes_created} nodes created, "
          f"{report.skipped_count} skipped")
    if report.edges_reconciled or report.dangling_edges:
        print(f"🔗 {report.edges_reconciled} edges reconciled, {report.dangling_edges} dangling")

    for skipped in report.skipped[:5]:
        print(f"  • {skipped.origin}: {skipped.reason}")
    if report.skipped_count > 5:
        print(f"  ... and {report.skipped_count - 5} more")


def _print_delta(delta: GraphDelta, limit: int = 50) -> None:
    stats = delta.stats
    print(f"📋 {stats.total_violations} violations: {stats.error_count} errors, "
          f"{stats.warning_count} warnings, {stats.info_count} info")

    for violation in delta.violations[:limit]:
        icon = SEVERITY_ICONS.get(violation.severity, "•")
        print(f"  {icon} [{violation.type}] {violation.message}")
    if len(delta.violations) > limit:
        print(f"  ... and {len(delta.violations) - limit} more")


def build_command(args):
    """Build the local graph and optionally save a snapshot"""
    print(f"📋 Building graph from {args.path}...")
    result = _build(args)
    _print_build_summary(result)

    if args.output:
        Path(args.output).write_text(result.graph.to_json(), encoding="utf-8")
        print(f"💾 Snapshot saved: {args.output}")

    return 0


def check_command(args):
    """Build the local graph and run the health checks"""
    print(f"🔍 Checking {args.path}...")
    result = _build(args)
    _print_build_summary(result)

    delta = DiffEngine().check(result.graph)
    _print_delta(delta)

    if delta.has_errors:
        print("❌ Check failed")
        return 1
    print("✅ No errors found")
    return 0


def diff_command(args):
    """Compare the local graph with a runtime snapshot"""
    result = _build(args)

    adapter = SnapshotRuntimeAdapter(args.runtime)
    runtime = adapter.fetch_graph(
        args.environment,
        domain=args.domain,
        include_types=args.types or None,
        compute_hashes=not args.no_hashes,
    )

    delta = DiffEngine().diff(result.graph, runtime)

    if args.json:
        print(delta.model_dump_json(indent=2))
    else:
        print(f"🔄 Local: {len(result.graph.nodes)} nodes, runtime ({args.environment}): {len(runtime.nodes)} nodes")
        _print_delta(delta)

    return 1 if delta.has_errors else 0


def impact_command(args):
    """Show the impact cone and deployment risk of changed components"""
    # --types filters the cone, so every type is scanned
    result = _build(args, scan_all_types=True)
    graph = result.graph

    missing = [component_id for component_id in args.ids if component_id not in graph]
    for component_id in missing:
        print(f"⚠️ Not in graph: {component_id}")

    service = ImpactAnalysisService()
    options = ImpactAnalysisOptions(
        max_depth=args.max_depth,
        include_types=args.types or None,
        include_paths=not args.no_paths,
    )
    cone = service.impact_cone(graph, args.ids, options)
    risk = service.estimate_deployment_risk(graph, args.ids)

    print(f"💥 {cone.stats.total_affected} affected component(s), max depth {cone.stats.max_depth}")
    for node in cone.affected_components:
        print(f"  - [{cone.depths[node.id]}] {node.id} ({node.type})")

    if cone.dependency_paths:
        print("🔗 Paths:")
        for path in cone.dependency_paths:
            print(f"  {path.path_string}")

    print(f"📊 Risk: {risk.risk} ({risk.reason})")
    return 0


def export_command(args):
    """Export the local graph as JSON or GraphML"""
    result = _build(args)
    output = Path(args.output)

    if args.format == 'graphml':
        nx.write_graphml(result.graph.to_networkx(), str(output))
    else:
        output.write_text(result.graph.to_json(), encoding="utf-8")

    print(f"💾 Exported {len(result.graph.nodes)} nodes to {output} ({args.format})")
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='compgraph',
        description='compgraph: dependency graph, drift and impact analysis for versioned components'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level (default: from settings)')
    parser.add_argument('--strict', action='store_true', help='Fail on unresolvable references')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_workspace(sub):
        sub.add_argument('path', help='Workspace root directory')
        sub.add_argument('--types', nargs='+', choices=TYPE_CHOICES, help='Component types to include')

    build_parser = subparsers.add_parser('build', help='Build the dependency graph')
    add_workspace(build_parser)
    build_parser.add_argument('--no-hashes', action='store_true', help='Skip api/config hashing')
    build_parser.add_argument('--output', help='Write the graph snapshot as JSON')
    build_parser.set_defaults(func=build_command)

    check_parser = subparsers.add_parser('check', help='Run health checks (semver, missing, cycles)')
    add_workspace(check_parser)
    check_parser.set_defaults(func=check_command)

    diff_parser = subparsers.add_parser('diff', help='Compare against a runtime snapshot')
    add_workspace(diff_parser)
    diff_parser.add_argument('--runtime', required=True, help='Snapshot file, or directory of <environment>.json')
    diff_parser.add_argument('--environment', default='default', help='Runtime environment id')
    diff_parser.add_argument('--domain', help='Only compare runtime components of this domain')
    diff_parser.add_argument('--no-hashes', action='store_true', help='Skip hash drift detection')
    diff_parser.add_argument('--json', action='store_true', help='Print the delta as JSON')
    diff_parser.set_defaults(func=diff_command)

    impact_parser = subparsers.add_parser('impact', help='Impact cone of changed components')
    add_workspace(impact_parser)
    impact_parser.add_argument('ids', nargs='+', help='Changed component ids (domain/flow/key@version)')
    impact_parser.add_argument('--max-depth', type=int, help='Maximum traversal depth')
    impact_parser.add_argument('--no-paths', action='store_true', help='Do not print dependency paths')
    impact_parser.set_defaults(func=impact_command)

    export_parser = subparsers.add_parser('export', help='Export the graph')
    add_workspace(export_parser)
    export_parser.add_argument('--output', required=True, help='Output file')
    export_parser.add_argument('--format', choices=['json', 'graphml'], default='json', help='Output format')
    export_parser.set_defaults(func=export_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        print("\n💡 Quick start: compgraph check ./workspace")
        print("💡 Drift: compgraph diff ./workspace --runtime snapshots/ --environment prod")
        return 1

    setup_logging(log_level=args.log_level or get_settings().log_level)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\n⚠️ Operation cancelled by user")
        return 1
    except CompGraphError as e:
        print(f"❌ Error: {e}")
        return 2
    except ValueError as e:
        print(f"❌ Invalid options: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
