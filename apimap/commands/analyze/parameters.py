"""Parameter inference for path, query and header parameters.

Every function here is a pure transformation over observed request data:
the same observations always give the same parameters in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re

from apimap.commands.analyze.utils import pattern_to_regex, placeholder_names
from apimap.formats.blueprint import ApiParameter, ParameterType

logger = logging.getLogger(__name__)

MAX_OBSERVED_VALUES = 10
MAX_OBSERVED_HEADER_VALUES = 5

IGNORED_HEADERS = frozenset({
    "host", "connection", "content-length", "content-type",
    "accept", "accept-encoding", "accept-language",
    "user-agent", "origin", "referer",
    "sec-ch-ua", "sec-ch-ua-mobile", "sec-ch-ua-platform",
    "sec-fetch-dest", "sec-fetch-mode", "sec-fetch-site", "sec-fetch-user",
    "cache-control", "pragma", "if-modified-since", "if-none-match",
})

AUTH_HEADERS = frozenset({
    "authorization", "x-api-key", "api-key", "x-auth-token",
    "x-access-token", "x-csrf-token", "x-xsrf-token",
})

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_UNESCAPED_COMMA_RE = re.compile(r"(?<!\\),")
_BOOLEAN_VALUES = frozenset({"true", "false", "0", "1"})

# (names, description) checked in order; "*id" names are handled separately
_QUERY_DESCRIPTIONS: list[tuple[frozenset[str], str]] = [
    (frozenset({"page", "p"}), "Page number for pagination"),
    (frozenset({"limit", "per_page", "perpage", "page_size", "pagesize"}), "Number of items per page"),
    (frozenset({"offset", "skip"}), "Offset for pagination"),
    (frozenset({"sort", "order", "orderby", "sort_by"}), "Sort order"),
    (frozenset({"q", "query", "search"}), "Search query"),
    (frozenset({"filter", "filters"}), "Filter criteria"),
    (frozenset({"include", "expand"}), "Related resources to include"),
    (frozenset({"fields", "select"}), "Fields to return"),
]


@dataclass(frozen=True)
class ParameterCorrelation:
    """How two query parameters co-occur across requests."""

    first: str
    second: str
    co_occurrence_rate: float
    type: str  # "ALWAYS_TOGETHER" | "FIRST_REQUIRES_SECOND" | "SECOND_REQUIRES_FIRST" | "OFTEN_TOGETHER"


def infer_type(values: list[str]) -> ParameterType:
    """Infer a parameter type from its observed string values.

    Checked in order: integer, number, boolean (true/false/0/1), array
    (any value holding an unescaped comma and not an object literal), string.
    """
    if not values:
        return "string"
    if all(_INTEGER_RE.match(v) for v in values):
        return "integer"
    if all(_NUMBER_RE.match(v) for v in values):
        return "number"
    if all(v.lower() in _BOOLEAN_VALUES for v in values):
        return "boolean"
    if any(_UNESCAPED_COMMA_RE.search(v) and not v.startswith("{") for v in values):
        return "array"
    return "string"


def extract_path_parameters(template: str, actual_paths: list[str]) -> list[ApiParameter]:
    """Collect observed values for each ``{name}`` placeholder of *template*.

    Paths that don't match the template are skipped.  Path parameters are
    always required.
    """
    names = placeholder_names(template)
    if not names:
        return []

    regex = pattern_to_regex(template, capture=True)
    observed: dict[str, list[str]] = {name: [] for name in names}
    for path in actual_paths:
        m = regex.match(path)
        if m is None:
            logger.debug("Path %s does not match template %s", path, template)
            continue
        for name, value in zip(names, m.groups()):
            if value not in observed[name]:
                observed[name].append(value)

    params: list[ApiParameter] = []
    for name in names:
        values = observed[name]
        params.append(
            ApiParameter(
                name=name,
                location="path",
                type=infer_type(values),
                required=True,
                observed_values=values[:MAX_OBSERVED_VALUES],
                example=values[0] if values else None,
            )
        )
    return params


def extract_query_parameters(query_maps: list[dict[str, str]]) -> list[ApiParameter]:
    """Union of query parameter names across requests, most frequent first.

    A parameter is required only when it appears in every one of at least two
    requests.
    """
    if not query_maps:
        return []

    values_by_name: dict[str, list[str]] = {}
    counts: dict[str, int] = {}
    for query in query_maps:
        for name, value in query.items():
            seen = values_by_name.setdefault(name, [])
            if value not in seen:
                seen.append(value)
            counts[name] = counts.get(name, 0) + 1

    total = len(query_maps)
    params = [
        ApiParameter(
            name=name,
            location="query",
            type=infer_type(values),
            required=counts[name] == total and total > 1,
            observed_values=values[:MAX_OBSERVED_VALUES],
            example=values[0] if values else None,
            description=describe_query_parameter(name),
        )
        for name, values in values_by_name.items()
    ]
    return sorted(params, key=lambda p: counts[p.name], reverse=True)


def extract_header_parameters(header_maps: list[dict[str, str]]) -> list[ApiParameter]:
    """Custom and auth request headers, with auth headers first and their values hidden."""
    if not header_maps:
        return []

    values_by_name: dict[str, list[str]] = {}
    counts: dict[str, int] = {}
    for headers in header_maps:
        for name, value in headers.items():
            if name.lower() in IGNORED_HEADERS:
                continue
            seen = values_by_name.setdefault(name, [])
            if value not in seen:
                seen.append(value)
            counts[name] = counts.get(name, 0) + 1

    total = len(header_maps)
    params: list[ApiParameter] = []
    for name, values in values_by_name.items():
        if name.lower() in AUTH_HEADERS:
            params.append(
                ApiParameter(
                    name=name,
                    location="header",
                    type="string",
                    required=True,
                    observed_values=[],
                    example=f"<{name}>",
                    description="Authentication header",
                )
            )
        else:
            params.append(
                ApiParameter(
                    name=name,
                    location="header",
                    type="string",
                    required=counts[name] == total and total > 1,
                    observed_values=values[:MAX_OBSERVED_HEADER_VALUES],
                    example=values[0] if values else None,
                )
            )

    def _priority(p: ApiParameter) -> tuple[int, int]:
        return (1 if p.name.lower() in AUTH_HEADERS else 0, counts[p.name])

    return sorted(params, key=_priority, reverse=True)


def describe_query_parameter(name: str) -> str | None:
    """Conventional meaning of common query parameter names."""
    lower = name.lower()
    for names, description in _QUERY_DESCRIPTIONS:
        if lower in names:
            return description
    if lower.endswith("id"):
        return "Unique identifier"
    if lower == "token":
        return "Authentication or session token"
    if lower in ("callback", "jsonp"):
        return "JSONP callback function name"
    return None


def analyze_parameter_correlations(query_maps: list[dict[str, str]]) -> list[ParameterCorrelation]:
    """Classify how each unordered pair of query parameters co-occurs.

    Pairs that never appear together are omitted.  Pairs that appear together
    but each also appear alone are reported as OFTEN_TOGETHER when they
    co-occur in at least half of the requests.
    """
    if not query_maps:
        return []

    names = sorted({name for query in query_maps for name in query})
    total = len(query_maps)
    correlations: list[ParameterCorrelation] = []
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            together = first_only = second_only = 0
            for query in query_maps:
                has_first = first in query
                has_second = second in query
                if has_first and has_second:
                    together += 1
                elif has_first:
                    first_only += 1
                elif has_second:
                    second_only += 1
            if together == 0:
                continue

            rate = together / total
            if first_only == 0 and second_only == 0:
                kind = "ALWAYS_TOGETHER"
            elif first_only == 0:
                kind = "FIRST_REQUIRES_SECOND"
            elif second_only == 0:
                kind = "SECOND_REQUIRES_FIRST"
            elif rate >= 0.5:
                kind = "OFTEN_TOGETHER"
            else:
                continue
            correlations.append(ParameterCorrelation(first, second, rate, kind))
    return correlations
