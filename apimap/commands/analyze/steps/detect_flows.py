"""Step: Detect multi-step API flows.

Two detectors run over the correlated actions of a session:

- session-bound flows: actions close together in time form one flow whose
  steps are the endpoints their exchanges hit, with parameters bound to
  values extracted from earlier responses where the names line up;
- pattern flows: endpoint sub-sequences that recur across actions.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from apimap.commands.analyze.steps.base import MechanicalStep, StepValidationError
from apimap.commands.analyze.steps.types import FlowDetectionInput
from apimap.commands.analyze.utils import (
    get_header,
    match_path_values,
    parse,
    pattern_to_regex,
    walk_json,
)
from apimap.formats.blueprint import (
    ApiEndpoint,
    ApiFlow,
    CookieSource,
    FlowStep,
    FromVariable,
    HeaderSource,
    JsonPathSource,
    ParameterBinding,
    ResponseExtractor,
    StaticValue,
    UserInput,
)
from apimap.formats.capture import Exchange
from apimap.formats.website_map import CorrelatedAction
from apimap.helpers.http import get_all_headers, set_cookie_name
from apimap.helpers.naming import stable_id

logger = logging.getLogger(__name__)

USER_INPUT_PARAMETERS = frozenset({
    "username", "email", "password", "name", "query", "search",
    "message", "comment", "title", "content", "description",
})

# (json key, variable name)
JSON_EXTRACTOR_KEYS = [
    ("access_token", "accessToken"),
    ("token", "token"),
    ("id", "id"),
    ("user_id", "userId"),
    ("session_id", "sessionId"),
    ("refresh_token", "refreshToken"),
]
EXTRACTOR_HEADERS = ("Set-Cookie", "X-Auth-Token", "Location")


class EndpointLookup:
    """Resolve exchanges to the endpoints they were folded into."""

    def __init__(self, endpoints: list[ApiEndpoint]):
        self.endpoints = endpoints
        self._by_exchange: dict[str, ApiEndpoint] = {}
        for ep in endpoints:
            for ex_id in ep.example_exchange_ids:
                self._by_exchange.setdefault(ex_id, ep)

    def find(self, exchange_id: str, method: str, url: str) -> ApiEndpoint | None:
        ep = self._by_exchange.get(exchange_id)
        if ep is not None:
            return ep
        return self.find_by_url(method, url)

    def find_by_url(self, method: str, url: str) -> ApiEndpoint | None:
        parsed = parse(url)
        if not parsed.host:
            return None
        for ep in self.endpoints:
            if ep.method != method.upper() or (ep.host and ep.host != parsed.host):
                continue
            if pattern_to_regex(ep.path_template).match(parsed.path):
                return ep
        return None


def group_actions_by_proximity(
    actions: list[CorrelatedAction], max_gap_ms: int, min_size: int
) -> list[list[CorrelatedAction]]:
    """Split time-ordered actions where consecutive ones are more than *max_gap_ms* apart."""
    groups: list[list[CorrelatedAction]] = []
    current: list[CorrelatedAction] = []
    for action in sorted(actions, key=lambda a: (a.timestamp, a.action_id)):
        if current and action.timestamp - current[-1].timestamp > max_gap_ms:
            if len(current) >= min_size:
                groups.append(current)
            current = []
        current.append(action)
    if len(current) >= min_size:
        groups.append(current)
    return groups


def detect_extractors(exchange: Exchange) -> list[ResponseExtractor]:
    """Values in a response that later requests are likely to reuse."""
    extractors: list[ResponseExtractor] = []
    response = exchange.response
    if response is None:
        return extractors

    if response.body:
        try:
            data: Any = json.loads(response.body)
        except (json.JSONDecodeError, ValueError):
            data = None
        if isinstance(data, (dict, list)):
            paths: dict[str, str] = {}
            for path, key, _ in walk_json(data):
                if key is not None and key not in paths:
                    paths[key] = path
            for json_key, variable in JSON_EXTRACTOR_KEYS:
                if json_key in paths:
                    extractors.append(
                        ResponseExtractor(variable_name=variable, source=JsonPathSource(path=paths[json_key]))
                    )

    for header in EXTRACTOR_HEADERS:
        if get_header(response.headers, header) is not None:
            extractors.append(
                ResponseExtractor(
                    variable_name=header.replace("-", "").lower(),
                    source=HeaderSource(header_name=header),
                )
            )

    for value in get_all_headers(response.headers, "set-cookie"):
        name = set_cookie_name(value)
        if name:
            extractors.append(
                ResponseExtractor(variable_name=name, source=CookieSource(cookie_name=name))
            )
    return extractors


def parameter_value(name: str, endpoint: ApiEndpoint, exchange: Exchange) -> str | None:
    """Value the exchange actually sent for parameter *name* (path, query, then header)."""
    parsed = parse(exchange.request.url)
    path_values = match_path_values(endpoint.path_template, parsed.path)
    if path_values and name in path_values:
        return path_values[name]
    if name in parsed.query_params:
        return parsed.query_params[name]
    return get_header(exchange.request.headers, name)


def find_binding(
    name: str,
    endpoint: ApiEndpoint,
    exchange: Exchange,
    available: dict[str, ResponseExtractor],
) -> ParameterBinding:
    """Bind a parameter: earlier extractor with a related name, user input, or the literal sent."""
    lower = name.lower()
    if lower:
        for variable in available:
            v = variable.lower()
            if lower in v or v in lower:
                return FromVariable(extractor_name=variable)

    if lower in USER_INPUT_PARAMETERS:
        return UserInput(name=name, description=f"User-provided {name}")

    return StaticValue(value=parameter_value(name, endpoint, exchange) or "")


def create_flow_step(
    order: int,
    endpoint: ApiEndpoint,
    exchange: Exchange,
    available: dict[str, ResponseExtractor],
) -> FlowStep:
    bindings: dict[str, ParameterBinding] = {}
    for param in endpoint.path_parameters + endpoint.query_parameters:
        bindings[param.name] = find_binding(param.name, endpoint, exchange, available)
    return FlowStep(
        order=order,
        endpoint_id=endpoint.id,
        description=f"{endpoint.method} {endpoint.path_template}",
        parameter_bindings=bindings,
        expected_status=exchange.response.status if exchange.response else None,
        extractors=detect_extractors(exchange),
    )


def infer_flow_name(actions: list[CorrelatedAction], steps: list[FlowStep]) -> str:
    action_types = {a.action_type.lower() for a in actions}
    endpoint_ids = [s.endpoint_id.lower() for s in steps]
    if "login" in action_types or (
        "submit" in action_types and any("auth" in e for e in endpoint_ids)
    ):
        return "Login Flow"
    if "click" in action_types and any("search" in e for e in endpoint_ids):
        return "Search Flow"
    if any("form" in t for t in action_types):
        return "Form Submit Flow"
    return f"User Flow ({len(steps)} Steps)"


def infer_flow_tags(steps: list[FlowStep]) -> list[str]:
    tags: list[str] = []
    for step in steps:
        eid = step.endpoint_id.lower()
        if "auth" in eid:
            tag = "auth"
        elif "user" in eid:
            tag = "user"
        elif "search" in eid:
            tag = "search"
        elif "create" in eid or eid.startswith("post_"):
            tag = "write"
        elif eid.startswith("get_"):
            tag = "read"
        else:
            continue
        if tag not in tags:
            tags.append(tag)
    return tags


def detect_session_flows(
    actions: list[CorrelatedAction],
    exchanges: dict[str, Exchange],
    lookup: EndpointLookup,
    max_gap_ms: int,
    min_steps: int,
) -> list[ApiFlow]:
    flows: list[ApiFlow] = []
    for group in group_actions_by_proximity(actions, max_gap_ms, min_steps):
        steps: list[FlowStep] = []
        available: dict[str, ResponseExtractor] = {}
        for action in group:
            for ref in action.exchange_refs:
                exchange = exchanges.get(ref.exchange_id)
                if exchange is None:
                    continue
                endpoint = lookup.find(ref.exchange_id, exchange.request.method, exchange.request.url)
                if endpoint is None:
                    continue
                step = create_flow_step(len(steps), endpoint, exchange, available)
                steps.append(step)
                for extractor in step.extractors:
                    available[extractor.variable_name] = extractor

        if len(steps) < min_steps:
            continue
        action_ids = [a.action_id for a in group]
        flows.append(
            ApiFlow(
                id=stable_id("flow", *action_ids),
                name=infer_flow_name(group, steps),
                description=f"Detected from {len(group)} user actions",
                steps=steps,
                source_action_ids=action_ids,
                tags=infer_flow_tags(steps),
            )
        )
    return flows


def detect_pattern_flows(
    actions: list[CorrelatedAction],
    lookup: EndpointLookup,
    max_length: int = 5,
    min_occurrences: int = 2,
) -> list[ApiFlow]:
    """Endpoint sub-sequences (length 2..max_length) seen in at least *min_occurrences* windows."""
    counts: dict[tuple[str, ...], int] = {}
    for action in sorted(actions, key=lambda a: (a.timestamp, a.action_id)):
        sequence: list[str] = []
        for ref in action.exchange_refs:
            ep = lookup.find(ref.exchange_id, ref.method, ref.url)
            if ep is not None:
                sequence.append(ep.id)
        if len(sequence) < 2:
            continue
        for size in range(2, min(max_length, len(sequence)) + 1):
            for start in range(len(sequence) - size + 1):
                window = tuple(sequence[start:start + size])
                counts[window] = counts.get(window, 0) + 1

    flows: list[ApiFlow] = []
    for pattern, count in counts.items():
        if count < min_occurrences:
            continue
        flows.append(
            ApiFlow(
                id=stable_id("pattern_flow", *pattern),
                name=f"Recurring Pattern ({count}x)",
                description="Recurring API call sequence",
                steps=[
                    FlowStep(order=i, endpoint_id=eid, description=f"Step {i + 1}")
                    for i, eid in enumerate(pattern)
                ],
                tags=["pattern", "recurring"],
            )
        )
    return flows


class DetectFlowsStep(MechanicalStep[FlowDetectionInput, list[ApiFlow]]):
    """Detect session-bound and recurring-pattern flows."""

    name = "detect_flows"

    def _execute(self, input: FlowDetectionInput) -> list[ApiFlow]:
        exchanges = {ex.exchange_id: ex for ex in input.exchanges}
        lookup = EndpointLookup(input.endpoints)
        actions = input.website_map.actions

        flows = detect_session_flows(
            actions, exchanges, lookup, input.flow_gap_ms, input.min_flow_steps
        )
        flows.extend(
            detect_pattern_flows(
                actions, lookup, input.max_pattern_length, input.min_pattern_occurrences
            )
        )

        unique: dict[str, ApiFlow] = {}
        for flow in flows:
            unique.setdefault(flow.id, flow)
        logger.debug("Detected %d flow(s)", len(unique))
        return list(unique.values())

    def _validate_output(self, output: list[ApiFlow]) -> None:
        for flow in output:
            emitted: set[str] = set()
            for i, step in enumerate(flow.steps):
                if step.order != i:
                    raise StepValidationError(
                        f"Flow {flow.id} step orders are not contiguous",
                        {"flow_id": flow.id, "expected": i, "got": step.order},
                    )
                for param, binding in step.parameter_bindings.items():
                    if isinstance(binding, FromVariable) and binding.extractor_name not in emitted:
                        raise StepValidationError(
                            f"Flow {flow.id} step {i} binds {param} to unknown variable",
                            {"flow_id": flow.id, "variable": binding.extractor_name},
                        )
                emitted.update(e.variable_name for e in step.extractors)
