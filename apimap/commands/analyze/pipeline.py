"""Orchestrator for the analysis pipeline.

Coordinates the Step instances to build an ApiBlueprint from a capture:
correlation -> filtering -> grouping -> endpoint extraction -> auth
detection -> flow detection -> assembly.  Independent captures can be
analyzed concurrently with ``build_blueprints``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
import logging

from apimap.commands.analyze.correlator import correlate
from apimap.commands.analyze.merge import merge_blueprint
from apimap.commands.analyze.steps.assemble import AssembleBlueprintStep, describe_blueprint
from apimap.commands.analyze.steps.detect_auth import DetectAuthStep
from apimap.commands.analyze.steps.detect_base_url import DetectBaseUrlStep
from apimap.commands.analyze.steps.detect_flows import DetectFlowsStep
from apimap.commands.analyze.steps.extraction import ExtractEndpointsStep
from apimap.commands.analyze.steps.filter_exchanges import FilterExchangesStep
from apimap.commands.analyze.steps.group_endpoints import GroupEndpointsStep
from apimap.commands.analyze.steps.types import (
    AnalysisConfig,
    BlueprintComponents,
    ExchangeFilterInput,
    FlowDetectionInput,
)
from apimap.commands.analyze.timeline import build_timeline
from apimap.commands.capture.types import CaptureBundle
from apimap.formats.blueprint import ApiBlueprint, ApiEndpoint
from apimap.formats.capture import Exchange
from apimap.formats.website_map import UnifiedTimeline, WebsiteMap

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_name(bundle: CaptureBundle) -> str:
    return bundle.manifest.app.name + " API" if bundle.manifest.app.name else "Discovered API"


def extract_endpoints(exchanges: list[Exchange], filter_api_only: bool = True) -> list[ApiEndpoint]:
    """Filter, group and describe endpoints. Malformed exchanges are dropped."""
    filtered = FilterExchangesStep().run(
        ExchangeFilterInput(exchanges=exchanges, api_only=filter_api_only)
    )
    groups = GroupEndpointsStep().run(filtered)
    return ExtractEndpointsStep().run(groups)


def correlate_capture(
    bundle: CaptureBundle, config: AnalysisConfig | None = None
) -> tuple[WebsiteMap, UnifiedTimeline]:
    """Website map and unified timeline of one capture."""
    config = config or AnalysisConfig()
    website_map = correlate(bundle, config.action_window_ms)
    timeline = build_timeline(bundle, window_ms=config.correlation_window_ms)
    return website_map, timeline


def build_blueprint_from_exchanges(
    exchanges: list[Exchange],
    project_id: str,
    name: str,
    config: AnalysisConfig | None = None,
    now: str | None = None,
) -> ApiBlueprint:
    """Blueprint from raw exchanges alone: endpoints and auth, no flows."""
    config = config or AnalysisConfig()
    well_formed = FilterExchangesStep().run(ExchangeFilterInput(exchanges=exchanges, api_only=False))
    api_exchanges = FilterExchangesStep().run(
        ExchangeFilterInput(exchanges=well_formed, api_only=config.filter_api_only)
    )
    endpoints = ExtractEndpointsStep().run(GroupEndpointsStep().run(api_exchanges))
    auth_patterns = DetectAuthStep().run(well_formed)
    base_url = DetectBaseUrlStep().run(api_exchanges)
    return AssembleBlueprintStep().run(
        BlueprintComponents(
            project_id=project_id,
            name=name,
            base_url=base_url,
            endpoints=endpoints,
            auth_patterns=auth_patterns,
            flows=[],
            total_exchanges=len(exchanges),
            created_at=now or _now(),
            description=describe_blueprint(len(exchanges), 0, 0),
        )
    )


def build_blueprint(
    bundle: CaptureBundle,
    config: AnalysisConfig | None = None,
    project_id: str | None = None,
    name: str | None = None,
    now: str | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> ApiBlueprint:
    """Build an ApiBlueprint from a capture bundle, flows included."""

    def progress(msg: str) -> None:
        if on_progress:
            on_progress(msg)

    config = config or AnalysisConfig()
    all_exchanges = list(bundle.exchanges)

    # Step 1: Correlate actions with exchanges
    website_map = correlate(bundle, config.action_window_ms)
    progress(
        f"Correlated {website_map.correlated_exchanges}/{website_map.total_exchanges} "
        f"exchanges with {len(website_map.actions)} actions"
    )

    # Step 2: Filter exchanges
    well_formed = FilterExchangesStep().run(
        ExchangeFilterInput(exchanges=all_exchanges, api_only=False)
    )
    api_exchanges = FilterExchangesStep().run(
        ExchangeFilterInput(exchanges=well_formed, api_only=config.filter_api_only)
    )
    progress(f"Kept {len(api_exchanges)}/{len(all_exchanges)} exchanges")

    # Step 3: Base URL
    base_url = DetectBaseUrlStep().run(api_exchanges) or bundle.manifest.app.base_url
    progress(f"API base URL: {base_url or '(none)'}")

    # Step 4: Group + extract endpoints
    groups = GroupEndpointsStep().run(api_exchanges)
    endpoints = ExtractEndpointsStep().run(groups)
    progress(f"Extracted {len(endpoints)} endpoints")

    # Step 5: Auth
    auth_patterns = DetectAuthStep().run(well_formed)
    progress(f"Detected {len(auth_patterns)} auth patterns")

    # Step 6: Flows
    flows = DetectFlowsStep().run(
        FlowDetectionInput(
            website_map=website_map,
            exchanges=api_exchanges,
            endpoints=endpoints,
            flow_gap_ms=config.flow_gap_ms,
            min_flow_steps=config.min_flow_steps,
            max_pattern_length=config.max_pattern_length,
            min_pattern_occurrences=config.min_pattern_occurrences,
        )
    )
    progress(f"Detected {len(flows)} flows")

    # Step 7: Assemble
    return AssembleBlueprintStep().run(
        BlueprintComponents(
            project_id=project_id or bundle.manifest.capture_id,
            name=name or default_name(bundle),
            base_url=base_url,
            endpoints=endpoints,
            auth_patterns=auth_patterns,
            flows=flows,
            total_exchanges=len(all_exchanges),
            created_at=now or _now(),
            description=describe_blueprint(
                len(all_exchanges), len(website_map.actions), len(flows)
            ),
        )
    )


def merge_capture(
    blueprint: ApiBlueprint,
    bundle: CaptureBundle,
    config: AnalysisConfig | None = None,
    now: str | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> ApiBlueprint:
    """Analyze *bundle* and fold the result into an existing blueprint."""
    now = now or _now()
    fresh = build_blueprint(
        bundle,
        config,
        project_id=blueprint.project_id,
        name=blueprint.name,
        now=now,
        on_progress=on_progress,
    )
    return merge_blueprint(blueprint, fresh, updated_at=now)


async def build_blueprints(
    sessions: list[CaptureBundle],
    config: AnalysisConfig | None = None,
    project_id: str | None = None,
    now: str | None = None,
) -> list[ApiBlueprint]:
    """Analyze independent captures concurrently; results follow input order."""
    config = config or AnalysisConfig()
    logger.debug("Analyzing %d sessions concurrently", len(sessions))
    return list(
        await asyncio.gather(
            *(
                asyncio.to_thread(build_blueprint, bundle, config, project_id, None, now)
                for bundle in sessions
            )
        )
    )
