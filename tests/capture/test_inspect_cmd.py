"""Tests for the inspect command."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from apimap.commands.capture.loader import write_bundle
from apimap.commands.capture.types import CaptureBundle
from apimap.main import cli


class TestInspect:
    def test_summary(self, sample_bundle: CaptureBundle, tmp_path: Path) -> None:
        path = tmp_path / "capture.zip"
        write_bundle(sample_bundle, path)
        result = CliRunner().invoke(cli, ["inspect", str(path)])
        assert result.exit_code == 0, result.output
        assert "test-capture-001" in result.output
        assert "Statistics" in result.output
        assert "ex_login" in result.output

    def test_exchange_details(self, sample_bundle: CaptureBundle, tmp_path: Path) -> None:
        path = tmp_path / "capture.json"
        write_bundle(sample_bundle, path)
        result = CliRunner().invoke(cli, ["inspect", str(path), "--exchange", "ex_login"])
        assert result.exit_code == 0, result.output
        assert "Exchange: ex_login" in result.output
        assert "access_token" in result.output

    def test_unknown_exchange(self, sample_bundle: CaptureBundle, tmp_path: Path) -> None:
        path = tmp_path / "capture.json"
        write_bundle(sample_bundle, path)
        result = CliRunner().invoke(cli, ["inspect", str(path), "--exchange", "nope"])
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_invalid_capture(self, tmp_path: Path) -> None:
        path = tmp_path / "capture.json"
        path.write_text("{}")
        result = CliRunner().invoke(cli, ["inspect", str(path)])
        assert result.exit_code != 0
        assert "invalid capture" in result.output
