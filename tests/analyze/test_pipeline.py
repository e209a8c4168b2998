"""Tests for apimap/commands/analyze/pipeline.py."""

import pytest

from apimap.commands.analyze.pipeline import (
    build_blueprint,
    build_blueprint_from_exchanges,
    build_blueprints,
    correlate_capture,
    default_name,
    extract_endpoints,
    merge_capture,
)
from apimap.commands.analyze.steps.types import AnalysisConfig
from apimap.formats.blueprint import BearerTokenPattern
from apimap.formats.capture import Header
from tests.conftest import (
    make_action,
    make_bundle,
    make_exchange,
    make_resource_request,
    make_resource_response,
)

NOW = "2026-02-13T16:00:00+00:00"


class TestCorrelateCapture:
    def _bundle(self):
        url = "https://api.example.com/api/items"
        return make_bundle(
            exchanges=[make_exchange("e1", "GET", url, started_at=100)],
            events=[
                make_action("a1", 0),
                make_resource_request("req", 1000, url),
                make_resource_response("resp", 21_000, url),
            ],
        )

    def test_defaults(self) -> None:
        website_map, timeline = correlate_capture(self._bundle())
        assert website_map.correlated_exchanges == 1
        resp = next(e for e in timeline.entries if e.event_id == "resp")
        assert resp.correlated_event_id == "req"

    def test_windows_from_config(self) -> None:
        config = AnalysisConfig(action_window_ms=50, correlation_window_ms=10_000)
        website_map, timeline = correlate_capture(self._bundle(), config)
        assert website_map.correlated_exchanges == 0
        resp = next(e for e in timeline.entries if e.event_id == "resp")
        assert resp.correlated_event_id is None


class TestBuildBlueprint:
    def test_sample_session(self, sample_bundle) -> None:
        bp = build_blueprint(sample_bundle, now=NOW)
        assert bp.project_id == "test-capture-001"
        assert bp.name == "Test App API"
        assert bp.base_url == "https://api.example.com"
        assert bp.created_at == NOW
        assert [ep.path_template for ep in bp.endpoints] == [
            "/api/auth/login",
            "/api/users/{userId}",
            "/api/users/{userId}/orders",
        ]
        assert bp.endpoints[1].auth_required == "bearer"
        assert bp.endpoints[0].auth_required == "none"
        assert len(bp.auth_patterns) == 1
        assert isinstance(bp.auth_patterns[0], BearerTokenPattern)
        assert len(bp.flows) == 1
        assert bp.metadata.total_exchanges_analyzed == 4
        assert bp.metadata.unique_endpoints_detected == 3
        assert bp.metadata.flows_detected == 1
        assert bp.metadata.coverage_percent == 75.0
        assert bp.description == (
            "API blueprint generated from 4 HTTP exchanges and 2 user actions. 1 flows detected."
        )

    def test_deterministic(self, sample_bundle) -> None:
        first = build_blueprint(sample_bundle, now=NOW)
        second = build_blueprint(sample_bundle, now=NOW)
        assert first.model_dump() == second.model_dump()

    def test_overrides(self, sample_bundle) -> None:
        bp = build_blueprint(sample_bundle, project_id="p1", name="Custom", now=NOW)
        assert bp.project_id == "p1"
        assert bp.name == "Custom"

    def test_progress_messages(self, sample_bundle) -> None:
        messages: list[str] = []
        build_blueprint(sample_bundle, now=NOW, on_progress=messages.append)
        assert messages[0] == "Correlated 4/4 exchanges with 2 actions"
        assert "Extracted 3 endpoints" in messages
        assert messages[-1] == "Detected 1 flows"

    def test_no_filter_keeps_assets(self, sample_bundle) -> None:
        bp = build_blueprint(sample_bundle, AnalysisConfig(filter_api_only=False), now=NOW)
        assert bp.metadata.unique_endpoints_detected == 4
        assert bp.metadata.coverage_percent == 100.0

    def test_empty_capture(self) -> None:
        bp = build_blueprint(make_bundle(), now=NOW)
        assert bp.endpoints == []
        assert bp.flows == []
        assert bp.base_url == "https://example.com"
        assert bp.metadata.coverage_percent == 0.0

    def test_malformed_exchanges_dropped(self) -> None:
        bundle = make_bundle(
            [
                make_exchange("bad", "GET", "garbage"),
                make_exchange("ok", "GET", "https://api.example.com/api/x"),
            ],
            [make_action("a", 0)],
        )
        bp = build_blueprint(bundle, now=NOW)
        assert [ep.example_exchange_ids for ep in bp.endpoints] == [["ok"]]
        assert bp.metadata.total_exchanges_analyzed == 2

    def test_default_name(self) -> None:
        bundle = make_bundle()
        assert default_name(bundle) == "Test App API"
        bundle.manifest.app.name = ""
        assert default_name(bundle) == "Discovered API"


class TestExtractEndpoints:
    def test_extract(self, sample_bundle) -> None:
        endpoints = extract_endpoints(sample_bundle.exchanges)
        assert len(endpoints) == 3
        assert sum(ep.metadata.hit_count for ep in endpoints) == 3

    def test_from_exchanges_has_no_flows(self, sample_bundle) -> None:
        bp = build_blueprint_from_exchanges(sample_bundle.exchanges, "proj", "API", now=NOW)
        assert bp.flows == []
        assert bp.metadata.unique_endpoints_detected == 3
        assert bp.description == (
            "API blueprint generated from 4 HTTP exchanges and 0 user actions. 0 flows detected."
        )


class TestMergeCapture:
    def test_merge_new_session(self, sample_bundle) -> None:
        bp = build_blueprint(sample_bundle, now=NOW)
        later = make_bundle(
            [
                make_exchange(
                    "ex_user_2", "GET", "https://api.example.com/api/users/7",
                    started_at=9000, request_headers=[Header(name="Authorization", value="Bearer zzz")],
                ),
                make_exchange("ex_cart", "GET", "https://api.example.com/api/cart", started_at=9100),
            ],
            [make_action("a", 8900)],
            capture_id="second",
        )
        merged = merge_capture(bp, later, now="2026-02-14T00:00:00+00:00")
        assert merged.id == bp.id
        assert merged.project_id == bp.project_id
        assert merged.updated_at == "2026-02-14T00:00:00+00:00"
        assert merged.metadata.total_exchanges_analyzed == 6
        assert merged.metadata.unique_endpoints_detected == 4
        user = next(ep for ep in merged.endpoints if ep.path_template == "/api/users/{userId}")
        assert user.example_exchange_ids == ["ex_user", "ex_user_2"]
        assert user.metadata.hit_count == 2


class TestBuildBlueprints:
    @pytest.mark.asyncio
    async def test_concurrent_sessions_keep_order(self, sample_bundle) -> None:
        other = make_bundle(
            [make_exchange("x", "GET", "https://api.example.com/api/x")],
            capture_id="other",
        )
        results = await build_blueprints([sample_bundle, other], now=NOW)
        assert [bp.project_id for bp in results] == ["test-capture-001", "other"]
        assert results[0].model_dump() == build_blueprint(sample_bundle, now=NOW).model_dump()

    @pytest.mark.asyncio
    async def test_shared_project(self, sample_bundle) -> None:
        results = await build_blueprints([sample_bundle], project_id="shared", now=NOW)
        assert results[0].project_id == "shared"

    @pytest.mark.asyncio
    async def test_no_sessions(self) -> None:
        assert await build_blueprints([]) == []
