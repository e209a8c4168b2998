"""CLI commands for navigation graphs: build, hubs, redirects, diff."""

from __future__ import annotations

import click
from pydantic import ValidationError
from rich.table import Table

from apimap.commands.analyze.cmd import read_document, write_document
from apimap.commands.analyze.steps.types import AnalysisConfig
from apimap.commands.capture.loader import CaptureLoadError, load_bundle
from apimap.formats.graph import MapGraph
from apimap.helpers.console import console, truncate


def read_graph(path: str) -> MapGraph:
    try:
        return MapGraph.model_validate(read_document(path))
    except ValidationError as e:
        raise click.ClickException(f"{path}: invalid graph\n{e}") from e


@click.group()
def graph() -> None:
    """Navigation graph tools: build, hub detection, redirects, diff."""


@graph.command()
@click.argument("capture_path", type=click.Path(exists=True))
@click.option("-o", "--output", required=True, help="Output graph path (.json or .yaml)")
@click.option("--tag-hubs", is_flag=True, default=False, help="Tag hub nodes")
@click.option(
    "--threshold", type=float, default=AnalysisConfig.hub_threshold, show_default=True,
    envvar="APIMAP_HUB_THRESHOLD", help="Minimum hub score",
)
@click.option("--sample-size", type=int, default=None, help="Betweenness source sample size")
def build(
    capture_path: str, output: str, tag_hubs: bool, threshold: float, sample_size: int | None
) -> None:
    """Build the navigation/resource graph of a capture."""
    from apimap.commands.graph.builder import build_graph, events_from_exchanges
    from apimap.commands.graph.hubs import tag_hubs as tag_hub_nodes

    try:
        bundle = load_bundle(capture_path)
    except CaptureLoadError as e:
        raise click.ClickException(str(e)) from e

    events = list(bundle.events)
    if not bundle.resource_requests and not bundle.resource_responses:
        # no recorder resource events: derive them from the HTTP exchanges
        events.extend(events_from_exchanges(bundle.exchanges))

    result = build_graph(events)
    if tag_hubs:
        result = tag_hub_nodes(result, threshold, sample_size)

    write_document(result, output)
    console.print(f"  {len(result.nodes)} nodes, {len(result.edges)} edges")
    console.print(f"[green]Graph written to {output}[/green]")


@graph.command()
@click.argument("graph_path", type=click.Path(exists=True))
@click.option("--top", type=int, default=10, show_default=True, help="Number of nodes to show")
@click.option("--sample-size", type=int, default=None, help="Betweenness source sample size")
def hubs(graph_path: str, top: int, sample_size: int | None) -> None:
    """Rank graph nodes by hub score."""
    from apimap.commands.graph.hubs import analyze_graph

    g = read_graph(graph_path)
    metrics = analyze_graph(g, sample_size)
    nodes = {n.id: n for n in g.nodes}

    table = Table(title="Hubs")
    table.add_column("Score", justify="right", style="cyan")
    table.add_column("Kind")
    table.add_column("URL")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Betweenness", justify="right")
    ranked = sorted(metrics.values(), key=lambda m: m.hub_score, reverse=True)
    for m in ranked[:top]:
        node = nodes[m.node_id]
        table.add_row(
            f"{m.hub_score:.2f}",
            node.kind,
            truncate(node.url, 60),
            str(m.in_degree),
            str(m.out_degree),
            f"{m.betweenness:.1f}",
        )
    console.print(table)


@graph.command()
@click.argument("graph_path", type=click.Path(exists=True))
def redirects(graph_path: str) -> None:
    """List redirect chains of a graph."""
    from apimap.commands.graph.redirects import detect_redirect_chains

    g = read_graph(graph_path)
    chains = detect_redirect_chains(g)
    if not chains:
        console.print("No redirect chains.")
        return
    for chain in chains:
        console.print(f"[bold]{chain.length} hops[/bold]")
        for nid in chain.nodes:
            node = g.get_node(nid)
            console.print(f"  -> {node.url if node is not None else nid}")


@graph.command()
@click.argument("before_path", type=click.Path(exists=True))
@click.argument("after_path", type=click.Path(exists=True))
def diff(before_path: str, after_path: str) -> None:
    """Compare two graphs."""
    from apimap.commands.graph.diff import compare

    result = compare(read_graph(before_path), read_graph(after_path))
    if not result.has_changes:
        console.print("No changes.")
        return

    for node in result.added_nodes:
        console.print(f"[green]+ node[/green] {node.kind} {node.url}")
    for node in result.removed_nodes:
        console.print(f"[red]- node[/red] {node.kind} {node.url}")
    for mod in result.modified_nodes:
        console.print(f"[yellow]~ node[/yellow] {mod.after.url}: {'; '.join(mod.changes)}")
    for edge in result.added_edges:
        console.print(f"[green]+ edge[/green] {edge.kind} {edge.from_} -> {edge.to}")
    for edge in result.removed_edges:
        console.print(f"[red]- edge[/red] {edge.kind} {edge.from_} -> {edge.to}")
    for emod in result.modified_edges:
        console.print(f"[yellow]~ edge[/yellow] {emod.edge_id}: {'; '.join(emod.changes)}")
