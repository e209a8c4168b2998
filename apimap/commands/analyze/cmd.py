"""CLI commands for the analyze stage: analyze, merge, correlate."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel, ValidationError
from rich.table import Table
import yaml

from apimap.commands.analyze.steps.types import AnalysisConfig
from apimap.commands.capture.loader import CaptureLoadError, load_bundle
from apimap.commands.capture.types import CaptureBundle
from apimap.formats.blueprint import ApiBlueprint
from apimap.helpers.console import console

YAML_SUFFIXES = (".yaml", ".yml")


def write_document(model: BaseModel, path: str | Path) -> None:
    """Write a model as YAML or JSON depending on the file suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = model.model_dump(mode="json", by_alias=True)
    with open(path, "w") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        else:
            json.dump(data, f, indent=2)
            f.write("\n")


def read_document(path: str | Path) -> Any:
    """Parse a YAML or JSON file into plain Python data."""
    path = Path(path)
    text = path.read_text()
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise click.ClickException(f"{path}: cannot parse ({e})") from e


def read_blueprint(path: str | Path) -> ApiBlueprint:
    try:
        return ApiBlueprint.model_validate(read_document(path))
    except ValidationError as e:
        raise click.ClickException(f"{path}: invalid blueprint\n{e}") from e


def _load(capture_path: str) -> CaptureBundle:
    try:
        bundle = load_bundle(capture_path)
    except CaptureLoadError as e:
        raise click.ClickException(str(e)) from e
    console.print(
        f"  Loaded {len(bundle.exchanges)} exchanges, "
        f"{len(bundle.actions)} actions, {len(bundle.navigations)} navigations"
    )
    return bundle


def _print_summary(blueprint: ApiBlueprint) -> None:
    table = Table(title="Endpoints")
    table.add_column("Method", style="cyan")
    table.add_column("Path")
    table.add_column("Hits", justify="right")
    table.add_column("Auth")
    table.add_column("Success", justify="right")
    for ep in blueprint.endpoints:
        rate = ep.metadata.success_rate
        table.add_row(
            ep.method,
            ep.path_template,
            str(ep.metadata.hit_count),
            ep.auth_required,
            f"{rate:.0%}" if rate is not None else "-",
        )
    console.print(table)

    m = blueprint.metadata
    console.print(
        f"  {m.unique_endpoints_detected} endpoints, {m.auth_patterns_detected} auth patterns, "
        f"{m.flows_detected} flows, coverage {m.coverage_percent:.1f}%"
    )
    for flow in blueprint.flows:
        console.print(f"  [bold]{flow.name}[/bold] ({len(flow.steps)} steps)")


def config_options(f: Any) -> Any:
    """Shared analysis tunables; each can also come from an APIMAP_* variable."""
    options = [
        click.option(
            "--no-filter", "no_filter", is_flag=True, default=False,
            help="Analyze every exchange, not only API calls",
        ),
        click.option(
            "--action-window-ms", type=int, default=10_000, show_default=True,
            envvar="APIMAP_ACTION_WINDOW_MS", help="Correlation window after a user action",
        ),
        click.option(
            "--flow-gap-ms", type=int, default=60_000, show_default=True,
            envvar="APIMAP_FLOW_GAP_MS", help="Idle gap that separates two flows",
        ),
        click.option(
            "--min-flow-steps", type=int, default=2, show_default=True,
            envvar="APIMAP_MIN_FLOW_STEPS", help="Minimum steps for a flow",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _config(no_filter: bool, action_window_ms: int, flow_gap_ms: int, min_flow_steps: int) -> AnalysisConfig:
    return AnalysisConfig(
        action_window_ms=action_window_ms,
        flow_gap_ms=flow_gap_ms,
        min_flow_steps=min_flow_steps,
        filter_api_only=not no_filter,
    )


@click.command()
@click.argument("capture_path", type=click.Path(exists=True))
@click.option("-o", "--output", required=True, help="Output blueprint path (.json or .yaml)")
@click.option("--project-id", default=None, help="Project id (defaults to the capture id)")
@click.option("--name", default=None, help="Blueprint name (defaults to '<app> API')")
@config_options
def analyze(
    capture_path: str,
    output: str,
    project_id: str | None,
    name: str | None,
    no_filter: bool,
    action_window_ms: int,
    flow_gap_ms: int,
    min_flow_steps: int,
) -> None:
    """Analyze a capture and produce an API blueprint."""
    from apimap.commands.analyze.pipeline import build_blueprint

    console.print(f"[bold]Loading capture:[/bold] {capture_path}")
    bundle = _load(capture_path)

    def on_progress(msg: str) -> None:
        console.print(f"  {msg}")

    console.print("[bold]Analyzing...[/bold]")
    blueprint = build_blueprint(
        bundle,
        _config(no_filter, action_window_ms, flow_gap_ms, min_flow_steps),
        project_id=project_id,
        name=name,
        on_progress=on_progress,
    )

    write_document(blueprint, output)
    _print_summary(blueprint)
    console.print(f"[green]Blueprint written to {output}[/green]")


@click.command()
@click.argument("blueprint_path", type=click.Path(exists=True))
@click.argument("capture_path", type=click.Path(exists=True))
@click.option("-o", "--output", required=True, help="Output blueprint path (.json or .yaml)")
@config_options
def merge(
    blueprint_path: str,
    capture_path: str,
    output: str,
    no_filter: bool,
    action_window_ms: int,
    flow_gap_ms: int,
    min_flow_steps: int,
) -> None:
    """Analyze a new capture and merge it into an existing blueprint."""
    from apimap.commands.analyze.pipeline import merge_capture

    blueprint = read_blueprint(blueprint_path)
    console.print(f"[bold]Merging capture:[/bold] {capture_path} into {blueprint.name}")
    bundle = _load(capture_path)

    merged = merge_capture(
        blueprint,
        bundle,
        _config(no_filter, action_window_ms, flow_gap_ms, min_flow_steps),
        on_progress=lambda msg: console.print(f"  {msg}"),
    )
    write_document(merged, output)
    _print_summary(merged)
    console.print(f"[green]Merged blueprint written to {output}[/green]")


@click.command()
@click.argument("capture_path", type=click.Path(exists=True))
@click.option("-o", "--output", required=True, help="Output website map path (.json or .yaml)")
@click.option(
    "--action-window-ms", type=int, default=10_000, show_default=True,
    envvar="APIMAP_ACTION_WINDOW_MS", help="Correlation window after a user action",
)
@click.option("--timeline", "timeline_path", default=None, help="Also write the unified timeline here")
@click.option(
    "--correlation-window-ms", type=int, default=30_000, show_default=True,
    envvar="APIMAP_CORRELATION_WINDOW_MS", help="Timeline window for attaching requests to an action",
)
def correlate(
    capture_path: str,
    output: str,
    action_window_ms: int,
    timeline_path: str | None,
    correlation_window_ms: int,
) -> None:
    """Correlate user actions with HTTP exchanges (website map)."""
    from apimap.commands.analyze.pipeline import correlate_capture

    bundle = _load(capture_path)
    config = AnalysisConfig(
        action_window_ms=action_window_ms, correlation_window_ms=correlation_window_ms
    )
    website_map, timeline = correlate_capture(bundle, config)
    write_document(website_map, output)
    console.print(
        f"  {website_map.correlated_exchanges}/{website_map.total_exchanges} exchanges "
        f"correlated with {len(website_map.actions)} actions"
    )
    console.print(f"[green]Website map written to {output}[/green]")

    if timeline_path:
        write_document(timeline, timeline_path)
        console.print(f"[green]Timeline written to {timeline_path}[/green]")
