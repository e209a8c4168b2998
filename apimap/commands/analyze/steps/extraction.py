"""Step: Build one ApiEndpoint per endpoint group.

Parameters, request body, responses, auth requirement and traffic metadata
are all derived mechanically from the exchanges of the group.
"""

from __future__ import annotations

from apimap.commands.analyze.parameters import (
    extract_header_parameters,
    extract_path_parameters,
    extract_query_parameters,
)
from apimap.commands.analyze.schemas import infer_body_schema
from apimap.commands.analyze.steps.base import MechanicalStep, StepValidationError
from apimap.commands.analyze.steps.types import EndpointGroup
from apimap.commands.analyze.utils import get_header, parse
from apimap.formats.blueprint import (
    ApiEndpoint,
    AuthType,
    BodyExample,
    EndpointMetadata,
    RequestBodySpec,
    ResponseSpec,
)
from apimap.formats.capture import Exchange, Header
from apimap.helpers.http import (
    is_json_media_type,
    is_session_cookie,
    media_type,
    parse_cookie_header,
)
from apimap.helpers.naming import make_endpoint_id

MAX_REQUEST_EXAMPLES = 3
MAX_RESPONSE_EXAMPLES = 2
MAX_REQUEST_EXAMPLE_CHARS = 10_000
MAX_RESPONSE_EXAMPLE_CHARS = 5_000

VERSION_SEGMENTS = frozenset({"api", "v1", "v2", "v3"})

STATUS_DESCRIPTIONS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def status_description(status: int) -> str:
    return STATUS_DESCRIPTIONS.get(status, f"HTTP {status}")


def _header_dict(headers: list[Header]) -> dict[str, str]:
    result: dict[str, str] = {}
    for h in headers:
        result.setdefault(h.name, h.value)
    return result


def build_request_body(exchanges: list[Exchange]) -> RequestBodySpec | None:
    """Request body spec, preferring the JSON content type when several were sent."""
    with_body = [
        (ex, media_type(ex.request.headers) or "application/octet-stream")
        for ex in exchanges
        if ex.request.body
    ]
    if not with_body:
        return None

    content_types = list(dict.fromkeys(ct for _, ct in with_body))
    primary = next((ct for ct in content_types if is_json_media_type(ct)), content_types[0])
    matching = [ex for ex, ct in with_body if ct == primary]

    examples = [
        BodyExample(
            name=f"example{i + 1}",
            value=(ex.request.body or "")[:MAX_REQUEST_EXAMPLE_CHARS],
            exchange_id=ex.exchange_id,
        )
        for i, ex in enumerate(matching[:MAX_REQUEST_EXAMPLES])
    ]
    schema = None
    if is_json_media_type(primary):
        schema = infer_body_schema([ex.request.body or "" for ex in matching])
    return RequestBodySpec(content_type=primary, schema_=schema, examples=examples)


def build_responses(exchanges: list[Exchange]) -> list[ResponseSpec]:
    """One ResponseSpec per observed status code, sorted by status."""
    by_status: dict[int, list[Exchange]] = {}
    for ex in exchanges:
        if ex.response is not None:
            by_status.setdefault(ex.response.status, []).append(ex)

    responses: list[ResponseSpec] = []
    for status in sorted(by_status):
        group = by_status[status]
        content_types = list(
            dict.fromkeys(
                ct for ex in group if ex.response and (ct := media_type(ex.response.headers))
            )
        )
        primary = next(
            (ct for ct in content_types if is_json_media_type(ct)),
            content_types[0] if content_types else None,
        )
        bodies = [
            (ex.exchange_id, ex.response.body)
            for ex in group
            if ex.response is not None and ex.response.body
        ]
        responses.append(
            ResponseSpec(
                status_code=status,
                description=status_description(status),
                content_type=primary,
                schema_=infer_body_schema([b for _, b in bodies]) if is_json_media_type(primary) else None,
                examples=[
                    BodyExample(
                        name=f"example{i + 1}",
                        value=body[:MAX_RESPONSE_EXAMPLE_CHARS],
                        exchange_id=ex_id,
                    )
                    for i, (ex_id, body) in enumerate(bodies[:MAX_RESPONSE_EXAMPLES])
                ],
            )
        )
    return responses


def detect_auth_requirement(exchanges: list[Exchange]) -> AuthType:
    """Auth scheme of the first exchange that carries credentials."""
    for ex in exchanges:
        headers = ex.request.headers

        auth = get_header(headers, "authorization")
        if auth is not None:
            lower = auth.lower()
            if lower.startswith("bearer "):
                return "bearer"
            if lower.startswith("basic "):
                return "basic"
            return "apiKey"

        if any("api" in h.name.lower() and "key" in h.name.lower() for h in headers):
            return "apiKey"

        cookie = get_header(headers, "cookie")
        if cookie is not None and any(is_session_cookie(name) for name in parse_cookie_header(cookie)):
            return "session"

    return "none"


def infer_tags(path_template: str) -> list[str]:
    """First two literal path segments, ignoring ``api`` and version prefixes."""
    segments = [
        s for s in path_template.split("/")
        if s and not s.startswith("{") and s not in VERSION_SEGMENTS
    ]
    return segments[:2]


def build_endpoint(group: EndpointGroup) -> ApiEndpoint:
    exchanges = group.exchanges
    urls = [parse(ex.request.url) for ex in exchanges]
    timestamps = [ex.started_at for ex in exchanges]
    durations = [d for ex in exchanges if (d := ex.duration_ms) is not None]
    successes = sum(
        1 for ex in exchanges if ex.response is not None and 200 <= ex.response.status < 300
    )

    return ApiEndpoint(
        id=make_endpoint_id(group.method, group.host, group.path_template),
        method=group.method,
        host=group.host,
        path_template=group.path_template,
        path_parameters=extract_path_parameters(group.path_template, [u.path for u in urls]),
        query_parameters=extract_query_parameters([u.query_params for u in urls]),
        header_parameters=extract_header_parameters(
            [_header_dict(ex.request.headers) for ex in exchanges]
        ),
        request_body=build_request_body(exchanges),
        responses=build_responses(exchanges),
        auth_required=detect_auth_requirement(exchanges),
        example_exchange_ids=[ex.exchange_id for ex in exchanges],
        metadata=EndpointMetadata(
            hit_count=len(exchanges),
            first_seen=min(timestamps),
            last_seen=max(timestamps),
            avg_response_time_ms=int(sum(durations) / len(durations)) if durations else None,
            success_rate=successes / len(exchanges),
        ),
        tags=infer_tags(group.path_template),
    )


class ExtractEndpointsStep(MechanicalStep[list[EndpointGroup], list[ApiEndpoint]]):
    """Turn endpoint groups into fully described ApiEndpoints."""

    name = "extract_endpoints"

    def _execute(self, input: list[EndpointGroup]) -> list[ApiEndpoint]:
        return [build_endpoint(group) for group in input if group.exchanges]

    def _validate_output(self, output: list[ApiEndpoint]) -> None:
        ids: set[str] = set()
        for ep in output:
            if ep.id in ids:
                raise StepValidationError(
                    f"Duplicate endpoint id: {ep.id}",
                    {"method": ep.method, "path_template": ep.path_template},
                )
            ids.add(ep.id)
            if ep.metadata.hit_count != len(ep.example_exchange_ids):
                raise StepValidationError(
                    f"Hit count mismatch for {ep.id}",
                    {"hit_count": ep.metadata.hit_count, "examples": len(ep.example_exchange_ids)},
                )
            if ep.metadata.first_seen > ep.metadata.last_seen:
                raise StepValidationError(
                    f"first_seen after last_seen for {ep.id}",
                    {"first_seen": ep.metadata.first_seen, "last_seen": ep.metadata.last_seen},
                )
