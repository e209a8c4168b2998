"""Merge a new analysis into an existing blueprint.

Endpoints are matched by id, auth patterns by type and flows by id.  Example
exchange ids are unioned, so an endpoint's hit count always equals its number
of distinct examples.
"""

from __future__ import annotations

import logging

from apimap.commands.analyze.parameters import MAX_OBSERVED_VALUES, infer_type
from apimap.formats.blueprint import (
    ApiBlueprint,
    ApiEndpoint,
    ApiFlow,
    ApiParameter,
    AuthPattern,
    EndpointMetadata,
    ResponseSpec,
)

logger = logging.getLogger(__name__)


def merge_parameters(existing: list[ApiParameter], new: list[ApiParameter]) -> list[ApiParameter]:
    """Union by name; observed values are unioned and the type re-inferred."""
    merged: dict[str, ApiParameter] = {p.name: p for p in existing}
    for param in new:
        old = merged.get(param.name)
        if old is None:
            merged[param.name] = param
            continue
        values = list(dict.fromkeys(old.observed_values + param.observed_values))
        merged[param.name] = old.model_copy(
            update={
                "observed_values": values[:MAX_OBSERVED_VALUES],
                "type": infer_type(values) if values else old.type,
                "required": old.required and param.required,
                "example": old.example or param.example,
                "description": old.description or param.description,
            }
        )
    return list(merged.values())


def merge_responses(existing: list[ResponseSpec], new: list[ResponseSpec]) -> list[ResponseSpec]:
    by_status = {r.status_code: r for r in existing}
    for response in new:
        by_status.setdefault(response.status_code, response)
    return [by_status[s] for s in sorted(by_status)]


def _merge_latency(a: int | None, b: int | None) -> int | None:
    # mean of the two averages, not weighted by hit counts
    if a is None:
        return b
    if b is None:
        return a
    return (a + b) // 2


def _merge_success_rate(a: EndpointMetadata, b: EndpointMetadata) -> float | None:
    if a.success_rate is None:
        return b.success_rate
    if b.success_rate is None:
        return a.success_rate
    hits = a.hit_count + b.hit_count
    if hits == 0:
        return a.success_rate
    return (a.success_rate * a.hit_count + b.success_rate * b.hit_count) / hits


def merge_endpoint(existing: ApiEndpoint, new: ApiEndpoint) -> ApiEndpoint:
    examples = list(dict.fromkeys(existing.example_exchange_ids + new.example_exchange_ids))
    old_meta, new_meta = existing.metadata, new.metadata
    return existing.model_copy(
        update={
            "path_parameters": merge_parameters(existing.path_parameters, new.path_parameters),
            "query_parameters": merge_parameters(existing.query_parameters, new.query_parameters),
            "header_parameters": merge_parameters(existing.header_parameters, new.header_parameters),
            "request_body": existing.request_body or new.request_body,
            "responses": merge_responses(existing.responses, new.responses),
            "auth_required": (
                existing.auth_required if existing.auth_required != "none" else new.auth_required
            ),
            "example_exchange_ids": examples,
            "metadata": EndpointMetadata(
                hit_count=len(examples),
                first_seen=min(old_meta.first_seen, new_meta.first_seen),
                last_seen=max(old_meta.last_seen, new_meta.last_seen),
                avg_response_time_ms=_merge_latency(
                    old_meta.avg_response_time_ms, new_meta.avg_response_time_ms
                ),
                success_rate=_merge_success_rate(old_meta, new_meta),
            ),
            "tags": list(dict.fromkeys(existing.tags + new.tags)),
        }
    )


def merge_endpoints(existing: list[ApiEndpoint], new: list[ApiEndpoint]) -> list[ApiEndpoint]:
    merged: dict[str, ApiEndpoint] = {ep.id: ep for ep in existing}
    for ep in new:
        if ep.id in merged:
            merged[ep.id] = merge_endpoint(merged[ep.id], ep)
        else:
            merged[ep.id] = ep
    return list(merged.values())


def merge_auth_patterns(existing: list[AuthPattern], new: list[AuthPattern]) -> list[AuthPattern]:
    """Keep existing patterns; add patterns of a type not yet known."""
    known = {p.type for p in existing}
    return list(existing) + [p for p in new if p.type not in known]


def merge_flows(existing: list[ApiFlow], new: list[ApiFlow]) -> list[ApiFlow]:
    known = {f.id for f in existing}
    return list(existing) + [f for f in new if f.id not in known]


def merge_blueprint(existing: ApiBlueprint, new: ApiBlueprint, updated_at: str) -> ApiBlueprint:
    """Fold *new* into *existing*; identity fields of *existing* are kept."""
    endpoints = merge_endpoints(existing.endpoints, new.endpoints)
    auth_patterns = merge_auth_patterns(existing.auth_patterns, new.auth_patterns)
    flows = merge_flows(existing.flows, new.flows)

    total = existing.metadata.total_exchanges_analyzed + new.metadata.total_exchanges_analyzed
    covered = sum(ep.metadata.hit_count for ep in endpoints)
    logger.debug(
        "Merged blueprint %s: %d endpoints, %d auth patterns, %d flows",
        existing.id, len(endpoints), len(auth_patterns), len(flows),
    )
    return existing.model_copy(
        update={
            "base_url": existing.base_url or new.base_url,
            "endpoints": endpoints,
            "auth_patterns": auth_patterns,
            "flows": flows,
            "metadata": existing.metadata.model_copy(
                update={
                    "total_exchanges_analyzed": total,
                    "unique_endpoints_detected": len(endpoints),
                    "auth_patterns_detected": len(auth_patterns),
                    "flows_detected": len(flows),
                    "coverage_percent": min(100.0, covered / total * 100) if total else 0.0,
                }
            ),
            "updated_at": updated_at,
        }
    )
