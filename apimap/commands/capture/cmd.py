"""CLI command for capture files: inspect."""

from __future__ import annotations

from collections import Counter
import json

import click
from rich.table import Table

from apimap.commands.capture.loader import CaptureLoadError, load_bundle
from apimap.commands.capture.types import CaptureBundle
from apimap.helpers.console import console, truncate


@click.command()
@click.argument("capture_path", type=click.Path(exists=True))
@click.option(
    "--exchange", "exchange_id", default=None, help="Show details for a specific exchange"
)
def inspect(capture_path: str, exchange_id: str | None) -> None:
    """Inspect a capture file."""
    try:
        bundle = load_bundle(capture_path)
    except CaptureLoadError as e:
        raise click.ClickException(str(e)) from e

    if exchange_id:
        inspect_exchange(bundle, exchange_id)
    else:
        inspect_summary(bundle)


def inspect_summary(bundle: CaptureBundle) -> None:
    """Print a summary of the capture."""
    m = bundle.manifest
    console.print("[bold]Capture Summary[/bold]")
    console.print(f"  Capture ID: {m.capture_id}")
    console.print(f"  Created: {m.created_at}")
    console.print(f"  App: {m.app.name} ({m.app.base_url})")
    if m.initial_url:
        console.print(f"  Initial URL: {m.initial_url}")
    console.print(f"  Duration: {m.duration_ms}ms")
    console.print()

    table = Table(title="Statistics")
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("HTTP Exchanges", str(len(bundle.exchanges)))
    event_counts = Counter(e.type for e in bundle.events)
    for kind in ("action", "navigation", "resource_request", "resource_response"):
        table.add_row(kind.replace("_", " ").title() + " Events", str(event_counts[kind]))
    console.print(table)
    console.print()

    if bundle.exchanges:
        exchange_table = Table(title="Exchanges")
        exchange_table.add_column("ID", style="cyan")
        exchange_table.add_column("Method")
        exchange_table.add_column("URL")
        exchange_table.add_column("Status", justify="right")
        exchange_table.add_column("Time (ms)", justify="right")

        for ex in bundle.exchanges:
            duration = ex.duration_ms
            exchange_table.add_row(
                ex.exchange_id,
                ex.request.method,
                truncate(ex.request.url, 60),
                str(ex.response.status) if ex.response else "-",
                str(duration) if duration is not None else "-",
            )
        console.print(exchange_table)


def inspect_exchange(bundle: CaptureBundle, exchange_id: str) -> None:
    """Print details for a specific exchange."""
    ex = bundle.get_exchange(exchange_id)
    if ex is None:
        raise click.ClickException(f"Exchange {exchange_id} not found")

    console.print(f"[bold]Exchange: {ex.exchange_id}[/bold]")
    console.print(f"  Started: {ex.started_at}")
    console.print(f"  Protocol: {ex.protocol}")
    console.print()

    console.print("[bold]Request[/bold]")
    console.print(f"  {ex.request.method} {ex.request.url}")
    for h in ex.request.headers:
        console.print(f"  {h.name}: {h.value}")
    if ex.request.body:
        console.print(f"  Body ({len(ex.request.body)} chars):")
        _print_body(ex.request.body)
    console.print()

    console.print("[bold]Response[/bold]")
    if ex.response is None:
        console.print("  (no response)")
        return
    console.print(f"  {ex.response.status} {ex.response.status_text}")
    for h in ex.response.headers:
        console.print(f"  {h.name}: {h.value}")
    if ex.response.body:
        console.print(f"  Body ({len(ex.response.body)} chars):")
        _print_body(ex.response.body)


def _print_body(body: str) -> None:
    """Pretty-print a body payload."""
    try:
        data = json.loads(body)
        console.print_json(json.dumps(data))
    except json.JSONDecodeError:
        console.print(f"  {truncate(body, 500)}")
