"""Step: Group exchanges into endpoints by inferring path templates."""

from __future__ import annotations

import re

from apimap.commands.analyze.steps.base import MechanicalStep, StepValidationError
from apimap.commands.analyze.steps.types import EndpointGroup
from apimap.commands.analyze.utils import parse
from apimap.formats.capture import Exchange
from apimap.helpers.naming import singularize, to_camel

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I
)
NUMERIC_ID_RE = re.compile(r"^\d+$")
OBJECT_ID_RE = re.compile(r"^[0-9a-f]{24}$", re.I)
LONG_TOKEN_MIN_LENGTH = 21

# Segments that are never parameters, even when they would otherwise match.
KNOWN_STATIC_SEGMENTS = frozenset({
    "api", "v1", "v2", "v3", "v4",
    "users", "posts", "comments", "items", "products",
    "auth", "login", "logout", "register", "signup",
    "search", "filter", "sort", "page",
    "admin", "dashboard", "settings", "profile",
    "public", "private", "internal",
})


def is_static_segment(segment: str) -> bool:
    return segment.lower() in KNOWN_STATIC_SEGMENTS


def is_likely_parameter(segment: str) -> bool:
    """UUIDs, numeric ids, 24-hex object ids and long alphanumeric tokens."""
    return bool(
        UUID_RE.match(segment)
        or NUMERIC_ID_RE.match(segment)
        or OBJECT_ID_RE.match(segment)
        or (len(segment) >= LONG_TOKEN_MIN_LENGTH and segment.isalnum())
    )


def infer_parameter_name(segment: str, previous: str | None, index: int) -> str:
    """Name a parameter after the resource segment before it (``users/123`` -> ``userId``).

    Falls back to a name describing the value shape.
    """
    if previous and not is_likely_parameter(previous):
        singular = singularize(previous.lower())
        if singular and singular not in KNOWN_STATIC_SEGMENTS:
            base = to_camel(singular)
            if base and not base[0].isdigit():
                return f"{base}Id"

    if UUID_RE.match(segment):
        return "uuid"
    if NUMERIC_ID_RE.match(segment):
        return "id"
    if OBJECT_ID_RE.match(segment):
        return "objectId"
    return f"param{index}"


def infer_path_template(segments: list[str]) -> str:
    """Build a template such as ``/api/users/{userId}/posts/{postId}``.

    Names repeated within one template get a numeric suffix (``id``, ``id2``).
    """
    out: list[str] = []
    used: dict[str, int] = {}
    param_index = 0
    for i, segment in enumerate(segments):
        if not segment:
            continue
        if is_static_segment(segment) or not is_likely_parameter(segment):
            out.append(segment)
            continue
        name = infer_parameter_name(segment, segments[i - 1] if i > 0 else None, param_index)
        param_index += 1
        used[name] = used.get(name, 0) + 1
        if used[name] > 1:
            name = f"{name}{used[name]}"
        out.append(f"{{{name}}}")
    return "/" + "/".join(out)


class GroupEndpointsStep(MechanicalStep[list[Exchange], list[EndpointGroup]]):
    """Group exchanges by (method, host, path template), in first-seen order."""

    name = "group_endpoints"

    def _execute(self, input: list[Exchange]) -> list[EndpointGroup]:
        groups: dict[tuple[str, str, str], EndpointGroup] = {}
        for ex in input:
            url = parse(ex.request.url)
            if not url.host:
                continue
            method = ex.request.method.upper()
            template = infer_path_template(url.path_segments)
            key = (method, url.host, template)
            group = groups.get(key)
            if group is None:
                group = EndpointGroup(method=method, host=url.host, path_template=template)
                groups[key] = group
            group.exchanges.append(ex)
        return list(groups.values())

    def _validate_output(self, output: list[EndpointGroup]) -> None:
        seen: set[str] = set()
        for group in output:
            for ex in group.exchanges:
                if ex.exchange_id in seen:
                    raise StepValidationError(
                        f"Exchange {ex.exchange_id} assigned to more than one endpoint",
                        {"exchange_id": ex.exchange_id, "path_template": group.path_template},
                    )
                seen.add(ex.exchange_id)
