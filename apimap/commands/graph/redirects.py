"""Redirect detection on graphs and navigation sequences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from apimap.commands.analyze.utils import normalize, parse
from apimap.formats.capture import NavigationEvent, ResourceResponseEvent
from apimap.formats.graph import MapGraph

REDIRECT_THRESHOLD_MS = 800
SAME_DOMAIN_REDIRECT_THRESHOLD_MS = 2000

DetectionMethod = Literal["http_status", "marked", "timing", "same_domain"]


@dataclass
class GraphRedirectChain:
    nodes: list[str]

    @property
    def length(self) -> int:
        return len(self.nodes)


@dataclass
class RedirectInfo:
    from_event: NavigationEvent
    to_event: NavigationEvent
    time_diff_ms: int
    reason: str
    method: DetectionMethod
    http_status: int | None = None


def detect_redirect_chains(graph: MapGraph) -> list[GraphRedirectChain]:
    """Follow Redirect edges into chains of at least two nodes, longest first.

    Chains start at nodes nothing redirects to, then at any node left over
    (pure cycles).  Each chain keeps its own visited set, so cycles stop.
    """
    redirects: dict[str, str] = {}
    targets: set[str] = set()
    for edge in graph.edges:
        if edge.kind == "Redirect":
            redirects[edge.from_] = edge.to
            targets.add(edge.to)

    starts = [n.id for n in graph.nodes if n.id in redirects and n.id not in targets]
    starts += [n.id for n in graph.nodes if n.id in redirects and n.id in targets]

    chains: list[GraphRedirectChain] = []
    visited: set[str] = set()
    for start in starts:
        if start in visited:
            continue
        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = start
        while current is not None and current in redirects and current not in seen:
            chain.append(current)
            seen.add(current)
            visited.add(current)
            current = redirects[current]
        if current is not None and current not in seen:
            chain.append(current)
            visited.add(current)
        if len(chain) >= 2:
            chains.append(GraphRedirectChain(nodes=chain))
    return sorted(chains, key=lambda c: c.length, reverse=True)


def same_domain(url1: str, url2: str) -> bool:
    host = parse(url1).host
    return bool(host) and host == parse(url2).host


def analyze_navigation_sequence(
    navigations: list[NavigationEvent],
    responses: list[ResourceResponseEvent] | None = None,
) -> list[RedirectInfo]:
    """Flag consecutive navigations that look like redirects.

    Checked in order: a 3xx response for the first URL, the navigation's own
    ``is_redirect`` flag, a follow-up within 800 ms, a same-domain follow-up
    within 2 s.
    """
    http_redirects = {
        normalize(r.url): r for r in (responses or []) if 300 <= r.status_code < 400
    }
    ordered = sorted(navigations, key=lambda n: n.at)

    results: list[RedirectInfo] = []
    for current, nxt in zip(ordered, ordered[1:]):
        diff = nxt.at - current.at
        response = http_redirects.get(normalize(current.url))

        method: DetectionMethod
        if response is not None:
            method = "http_status"
            reason = f"HTTP {response.status_code} redirect to {response.redirect_location}"
        elif current.is_redirect:
            method = "marked"
            reason = "Marked as redirect"
        elif diff <= REDIRECT_THRESHOLD_MS:
            method = "timing"
            reason = f"Fast redirect ({diff}ms)"
        elif same_domain(current.url, nxt.url) and diff <= SAME_DOMAIN_REDIRECT_THRESHOLD_MS:
            method = "same_domain"
            reason = "Same-domain redirect"
        else:
            continue

        results.append(
            RedirectInfo(
                from_event=current,
                to_event=nxt,
                time_diff_ms=diff,
                reason=reason,
                method=method,
                http_status=response.status_code if response is not None else None,
            )
        )
    return results
