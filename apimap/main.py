"""CLI entry point for apimap."""

from __future__ import annotations

import click
from dotenv import load_dotenv

from apimap.commands.analyze.cmd import analyze, correlate, merge
from apimap.commands.capture.cmd import inspect
from apimap.commands.graph.cmd import graph
from apimap.helpers.logging import setup_logging

load_dotenv()


@click.group()
@click.version_option(version="0.1.0", prog_name="apimap")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logs")
def cli(verbose: bool) -> None:
    """Map a web application's API surface from captured traffic."""
    setup_logging(verbose)


cli.add_command(inspect)
cli.add_command(correlate)
cli.add_command(analyze)
cli.add_command(merge)
cli.add_command(graph)


if __name__ == "__main__":
    cli()
