"""Build a navigation/resource graph from recorder events.

Navigations add Page nodes linked from the page they came from; resource
requests add the loaded resource linked from its initiator; resource
responses annotate nodes with HTTP details and add Redirect edges.  Node
ids are hashes of the normalized URL, so graphs built from two sessions of
the same site can be diffed.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from apimap.commands.analyze.steps.filter_exchanges import is_static_asset
from apimap.commands.analyze.utils import get_header, normalize
from apimap.formats.capture import (
    Exchange,
    NavigationEvent,
    RecorderEvent,
    ResourceKind,
    ResourceRequestEvent,
    ResourceResponseEvent,
)
from apimap.formats.graph import EdgeKind, MapEdge, MapGraph, MapNode, NodeKind
from apimap.helpers.http import is_json_media_type, media_type
from apimap.helpers.naming import edge_id, node_id

logger = logging.getLogger(__name__)

_KIND_RANK: dict[str, int] = {"Page": 0, "Asset": 1, "ApiEndpoint": 2}


def merge_kind(existing: NodeKind, incoming: NodeKind) -> NodeKind:
    """Error is sticky; otherwise ApiEndpoint beats Asset beats Page."""
    if existing == "Error" or incoming == "Error":
        return "Error"
    if existing == incoming:
        return existing
    if existing in _KIND_RANK and incoming in _KIND_RANK:
        return existing if _KIND_RANK[existing] >= _KIND_RANK[incoming] else incoming
    return existing


class GraphBuilder:
    """Apply recorder events to a MapGraph, in place."""

    def __init__(self, graph: MapGraph | None = None):
        self.graph = graph if graph is not None else MapGraph()
        self._nodes_by_url: dict[str, MapNode] = {n.url: n for n in self.graph.nodes}
        self._edges_by_id: dict[str, MapEdge] = {e.id: e for e in self.graph.edges}

    def apply(self, event: RecorderEvent) -> None:
        if isinstance(event, NavigationEvent):
            self._apply_navigation(event)
        elif isinstance(event, ResourceRequestEvent):
            self._apply_resource_request(event)
        elif isinstance(event, ResourceResponseEvent):
            self._apply_resource_response(event)

    def upsert_node(self, url: str, kind: NodeKind, title: str | None, at: int) -> MapNode:
        node = self._nodes_by_url.get(url)
        if node is None:
            node = MapNode(
                id=node_id(url), kind=kind, url=url, title=title,
                first_seen_at=at, last_seen_at=at,
            )
            self.graph.nodes.append(node)
            self._nodes_by_url[url] = node
            return node
        node.kind = merge_kind(node.kind, kind)
        node.title = node.title or title
        if node.first_seen_at is None:
            node.first_seen_at = at
        node.last_seen_at = at
        return node

    def upsert_edge(
        self, from_id: str, to_id: str, kind: EdgeKind, label: str | None, at: int
    ) -> MapEdge:
        eid = edge_id(from_id, to_id, kind, label)
        edge = self._edges_by_id.get(eid)
        if edge is None:
            edge = MapEdge(
                id=eid, kind=kind, from_=from_id, to=to_id, label=label,
                first_seen_at=at, last_seen_at=at,
            )
            self.graph.edges.append(edge)
            self._edges_by_id[eid] = edge
            return edge
        if edge.first_seen_at is None:
            edge.first_seen_at = at
        edge.last_seen_at = at
        return edge

    def _apply_navigation(self, e: NavigationEvent) -> None:
        to_node = self.upsert_node(normalize(e.url), "Page", e.title, e.at)
        if e.from_url is None:
            return
        from_node = self.upsert_node(normalize(e.from_url), "Page", None, e.at)
        kind: EdgeKind = "Redirect" if e.is_redirect else "Link"
        self.upsert_edge(from_node.id, to_node.id, kind, None, e.at)

    def _apply_resource_request(self, e: ResourceRequestEvent) -> None:
        if e.resource_kind == "document":
            node_kind: NodeKind = "Page"
        elif e.resource_kind in ("xhr", "fetch"):
            node_kind = "ApiEndpoint"
        else:
            node_kind = "Asset"
        resource = self.upsert_node(normalize(e.url), node_kind, None, e.at)
        if e.initiator_url is None:
            return

        initiator = self.upsert_node(normalize(e.initiator_url), "Page", None, e.at)
        if e.resource_kind == "xhr":
            edge_kind: EdgeKind = "Xhr"
        elif e.resource_kind == "fetch":
            edge_kind = "Fetch"
        else:
            edge_kind = "AssetLoad"
        self.upsert_edge(initiator.id, resource.id, edge_kind, e.method, e.at)

    def _apply_resource_response(self, e: ResourceResponseEvent) -> None:
        url = normalize(e.url)
        is_error = e.status_code >= 400
        is_redirect = 300 <= e.status_code < 400

        node = self.upsert_node(url, "Error" if is_error else "Page", None, e.at)

        node.attributes.update({
            "httpStatusCode": e.status_code,
            "contentType": e.content_type or "unknown",
            "lastResponseTimeMs": e.response_time_ms,
        })
        if is_error:
            node.attributes["isErrorPage"] = True

        if is_redirect and e.redirect_location:
            target_url = normalize(urljoin(e.url, e.redirect_location))
            node.attributes["isRedirect"] = True
            node.attributes["redirectLocation"] = target_url
            target = self.upsert_node(target_url, "Page", None, e.at)
            self.upsert_edge(node.id, target.id, "Redirect", str(e.status_code), e.at)


def build_graph(events: list[RecorderEvent], graph: MapGraph | None = None) -> MapGraph:
    """Apply *events* in time order to *graph* (or a new graph) and return it."""
    builder = GraphBuilder(graph)
    for event in sorted(events, key=lambda e: e.at):
        builder.apply(event)
    logger.debug(
        "Graph has %d nodes and %d edges", len(builder.graph.nodes), len(builder.graph.edges)
    )
    return builder.graph


def _resource_kind(exchange: Exchange) -> ResourceKind:
    content_type = media_type(exchange.response.headers) if exchange.response else None
    if content_type == "text/html":
        return "document"
    if is_json_media_type(content_type):
        return "xhr"
    if is_static_asset(exchange.request.url):
        return "other"
    if content_type is None and exchange.request.method.upper() == "GET":
        return "document"
    return "fetch"


def events_from_exchanges(exchanges: list[Exchange]) -> list[RecorderEvent]:
    """Resource request/response events equivalent to raw HTTP exchanges.

    The ``Referer`` header stands in for the initiator.
    """
    events: list[RecorderEvent] = []
    for ex in sorted(exchanges, key=lambda e: (e.started_at, e.exchange_id)):
        request_id = f"{ex.exchange_id}:request"
        events.append(
            ResourceRequestEvent(
                id=request_id,
                at=ex.started_at,
                url=ex.request.url,
                method=ex.request.method.upper(),
                initiator_url=get_header(ex.request.headers, "referer"),
                resource_kind=_resource_kind(ex),
            )
        )
        if ex.response is None:
            continue
        events.append(
            ResourceResponseEvent(
                id=f"{ex.exchange_id}:response",
                at=ex.completed_at if ex.completed_at is not None else ex.started_at,
                url=ex.request.url,
                request_id=request_id,
                status_code=ex.response.status,
                content_type=media_type(ex.response.headers),
                redirect_location=(
                    ex.response.redirect_location or get_header(ex.response.headers, "location")
                ),
                response_time_ms=ex.duration_ms or 0,
            )
        )
    return events
