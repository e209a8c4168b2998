"""Intermediate types passed between pipeline steps.

Every dataclass here represents data flowing from one step to the next.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from apimap.formats.blueprint import ApiEndpoint, ApiFlow, AuthPattern
from apimap.formats.capture import Exchange
from apimap.formats.website_map import WebsiteMap

# -- Configuration -----------------------------------------------------------


@dataclass
class AnalysisConfig:
    """Tunables of the analysis. Defaults match typical browsing sessions."""

    action_window_ms: int = 10_000
    correlation_window_ms: int = 30_000
    flow_gap_ms: int = 60_000
    min_flow_steps: int = 2
    max_pattern_length: int = 5
    min_pattern_occurrences: int = 2
    filter_api_only: bool = True
    hub_threshold: float = 5.0


# -- Endpoint extraction -----------------------------------------------------


@dataclass
class ExchangeFilterInput:
    exchanges: list[Exchange]
    api_only: bool = True


@dataclass
class EndpointGroup:
    """Exchanges sharing one (method, host, path template)."""

    method: str
    host: str
    path_template: str
    exchanges: list[Exchange] = field(default_factory=lambda: [])


# -- Flow detection ----------------------------------------------------------


@dataclass
class FlowDetectionInput:
    website_map: WebsiteMap
    exchanges: list[Exchange]
    endpoints: list[ApiEndpoint]
    flow_gap_ms: int = 60_000
    min_flow_steps: int = 2
    max_pattern_length: int = 5
    min_pattern_occurrences: int = 2


# -- Assembly ----------------------------------------------------------------


@dataclass
class BlueprintComponents:
    project_id: str
    name: str
    base_url: str
    endpoints: list[ApiEndpoint]
    auth_patterns: list[AuthPattern]
    flows: list[ApiFlow]
    total_exchanges: int
    created_at: str
    description: str | None = None
