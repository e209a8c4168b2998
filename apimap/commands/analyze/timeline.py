"""Unified timeline and navigation tree of a capture session.

The timeline nests every recorder event under the navigation it happened
in, and pairs each resource response with the request that caused it.  The
session tree arranges visited pages by where the user came from.
"""

from __future__ import annotations

import logging

from apimap.commands.analyze.utils import normalize
from apimap.commands.capture.types import CaptureBundle
from apimap.formats.capture import (
    NavigationEvent,
    RecorderEvent,
    ResourceRequestEvent,
    ResourceResponseEvent,
)
from apimap.formats.graph import MapGraph
from apimap.formats.website_map import SessionTreeNode, TimelineEntry, UnifiedTimeline
from apimap.helpers.naming import node_id

logger = logging.getLogger(__name__)

CORRELATION_WINDOW_MS = 30_000


def _event_url(event: RecorderEvent) -> str | None:
    return getattr(event, "url", None)


def match_request(
    response: ResourceResponseEvent,
    requests_by_url: dict[str, list[ResourceRequestEvent]],
    requests_by_id: dict[str, ResourceRequestEvent],
    window_ms: int = CORRELATION_WINDOW_MS,
) -> ResourceRequestEvent | None:
    """The request a response answers.

    An explicit ``request_id`` wins; otherwise the latest request for the same
    normalized URL issued at or before the response and less than *window_ms*
    earlier.
    """
    if response.request_id and response.request_id in requests_by_id:
        return requests_by_id[response.request_id]
    for req in reversed(requests_by_url.get(normalize(response.url), [])):
        if req.at <= response.at and response.at - req.at < window_ms:
            return req
    return None


def build_timeline_entries(
    events: list[RecorderEvent], window_ms: int = CORRELATION_WINDOW_MS
) -> list[TimelineEntry]:
    ordered = sorted(events, key=lambda e: e.at)

    requests_by_url: dict[str, list[ResourceRequestEvent]] = {}
    requests_by_id: dict[str, ResourceRequestEvent] = {}
    for event in ordered:
        if isinstance(event, ResourceRequestEvent):
            requests_by_id[event.id] = event
            requests_by_url.setdefault(normalize(event.url), []).append(event)

    entries: list[TimelineEntry] = []
    navigation_stack: list[str] = []
    for event in ordered:
        parent = navigation_stack[-1] if navigation_stack else None
        depth = len(navigation_stack)
        correlated: str | None = None

        if isinstance(event, NavigationEvent):
            if not event.is_redirect:
                navigation_stack.append(event.id)
        elif isinstance(event, ResourceResponseEvent):
            req = match_request(event, requests_by_url, requests_by_id, window_ms)
            if req is not None:
                correlated = req.id
                parent = req.id

        entries.append(
            TimelineEntry(
                event_id=event.id,
                event_type=event.type,
                at=event.at,
                url=_event_url(event),
                correlated_event_id=correlated,
                parent_event_id=parent,
                depth=depth,
            )
        )
    return entries


def tree_depth(url: str, parents: dict[str, str]) -> int:
    """Distance from *url* to its root; a parent cycle counts as a root (0)."""
    depth = 0
    visited = {url}
    current = url
    while current in parents:
        current = parents[current]
        if current in visited:
            logger.warning("Navigation cycle through %s; depth reset to 0", url)
            return 0
        visited.add(current)
        depth += 1
    return depth


def build_session_tree(
    events: list[RecorderEvent], graph: MapGraph | None = None
) -> list[SessionTreeNode]:
    """One tree node per distinct visited URL, sorted by depth.

    A navigation's parent is its ``from_url``; a redirect without one hangs
    under the page visited just before.
    """
    navigations = sorted(
        (e for e in events if isinstance(e, NavigationEvent)), key=lambda e: e.at
    )
    graph_nodes = {normalize(n.url): n for n in graph.nodes} if graph else {}

    visited: list[str] = []
    titles: dict[str, str | None] = {}
    parents: dict[str, str] = {}
    last_url: str | None = None
    for nav in navigations:
        url = normalize(nav.url)
        if url in titles:
            continue
        visited.append(url)
        titles[url] = nav.title
        if nav.from_url is not None:
            parents[url] = normalize(nav.from_url)
        elif last_url is not None and nav.is_redirect:
            parents[url] = last_url
        last_url = url

    def _id(url: str) -> str:
        node = graph_nodes.get(url)
        return node.id if node is not None else node_id(url)

    children: dict[str, list[str]] = {}
    for child, parent in parents.items():
        children.setdefault(parent, []).append(child)

    event_ids: dict[str, list[str]] = {}
    for event in events:
        if isinstance(event, (NavigationEvent, ResourceRequestEvent, ResourceResponseEvent)):
            event_ids.setdefault(normalize(event.url), []).append(event.id)

    nodes: list[SessionTreeNode] = []
    for url in visited:
        graph_node = graph_nodes.get(url)
        parent_url = parents.get(url)
        nodes.append(
            SessionTreeNode(
                node_id=_id(url),
                url=url,
                title=graph_node.title if graph_node and graph_node.title else titles.get(url),
                parent_node_id=_id(parent_url) if parent_url in titles else None,
                children=[_id(c) for c in children.get(url, [])],
                depth=tree_depth(url, parents),
                event_ids=event_ids.get(url, []),
            )
        )
    return sorted(nodes, key=lambda n: n.depth)


def build_timeline(
    bundle: CaptureBundle,
    graph: MapGraph | None = None,
    window_ms: int = CORRELATION_WINDOW_MS,
) -> UnifiedTimeline:
    events = list(bundle.events)
    tree = build_session_tree(events, graph)

    root_id: str | None = None
    initial = bundle.manifest.initial_url
    if initial:
        target = normalize(initial)
        root_id = next(
            (n.node_id for n in tree if n.url == target and n.parent_node_id is None), None
        )
    if root_id is None:
        root_id = next((n.node_id for n in tree if n.parent_node_id is None), None)

    return UnifiedTimeline(
        session_id=bundle.manifest.capture_id,
        entries=build_timeline_entries(events, window_ms),
        tree_nodes=tree,
        root_node_id=root_id,
    )
