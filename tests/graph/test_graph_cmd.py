"""Tests for the graph CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from apimap.commands.analyze.cmd import write_document
from apimap.commands.capture.loader import write_bundle
from apimap.commands.capture.types import CaptureBundle
from apimap.formats.graph import MapGraph
from apimap.main import cli
from tests.conftest import make_graph


class TestGraphBuild:
    def test_build_from_exchanges(self, sample_bundle: CaptureBundle, tmp_path: Path) -> None:
        capture = tmp_path / "capture.zip"
        write_bundle(sample_bundle, capture)
        output = tmp_path / "graph.json"
        result = CliRunner().invoke(cli, ["graph", "build", str(capture), "-o", str(output)])
        assert result.exit_code == 0, result.output
        graph = MapGraph.model_validate(json.loads(output.read_text()))
        urls = {n.url for n in graph.nodes}
        assert "https://example.com/profile" in urls
        assert "https://api.example.com/api/users/42" in urls
        assert all("from" in e for e in json.loads(output.read_text())["edges"])

    def test_build_yaml_with_hubs(self, sample_bundle: CaptureBundle, tmp_path: Path) -> None:
        capture = tmp_path / "capture.json"
        write_bundle(sample_bundle, capture)
        output = tmp_path / "graph.yaml"
        result = CliRunner().invoke(
            cli, ["graph", "build", str(capture), "-o", str(output), "--tag-hubs", "--threshold", "0"]
        )
        assert result.exit_code == 0, result.output
        assert output.exists()
        assert "hub" in output.read_text()

    def test_missing_capture(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["graph", "build", str(tmp_path / "nope.zip"), "-o", "x.json"])
        assert result.exit_code != 0


class TestGraphAnalysis:
    def test_hubs(self, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        write_document(make_graph([("A", "B"), ("B", "C")]), path)
        result = CliRunner().invoke(cli, ["graph", "hubs", str(path), "--top", "1"])
        assert result.exit_code == 0, result.output
        assert "example.com/B" in result.output
        assert "example.com/A" not in result.output

    def test_redirects(self, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        write_document(make_graph([("A", "B"), ("B", "A")], kind="Redirect"), path)
        result = CliRunner().invoke(cli, ["graph", "redirects", str(path)])
        assert result.exit_code == 0, result.output
        assert "2 hops" in result.output
        assert "https://example.com/A" in result.output

    def test_no_redirects(self, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        write_document(make_graph([("A", "B")]), path)
        result = CliRunner().invoke(cli, ["graph", "redirects", str(path)])
        assert "No redirect chains." in result.output

    def test_diff(self, tmp_path: Path) -> None:
        before = tmp_path / "before.json"
        after = tmp_path / "after.yaml"
        write_document(make_graph([("A", "B")]), before)
        write_document(make_graph([("A", "B"), ("B", "C")]), after)
        result = CliRunner().invoke(cli, ["graph", "diff", str(before), str(after)])
        assert result.exit_code == 0, result.output
        assert "+ node" in result.output
        assert "example.com/C" in result.output

    def test_diff_identical(self, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        write_document(make_graph([("A", "B")]), path)
        result = CliRunner().invoke(cli, ["graph", "diff", str(path), str(path)])
        assert "No changes." in result.output

    def test_invalid_graph(self, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        path.write_text('{"nodes": [{"id": 1}]}')
        result = CliRunner().invoke(cli, ["graph", "hubs", str(path)])
        assert result.exit_code != 0
        assert "invalid graph" in result.output
