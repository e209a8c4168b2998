"""Compare two graphs: added, removed and modified nodes and edges."""

from __future__ import annotations

from dataclasses import dataclass, field

from apimap.formats.graph import MapEdge, MapGraph, MapNode


@dataclass
class NodeModification:
    node_id: str
    before: MapNode
    after: MapNode
    changes: list[str]


@dataclass
class EdgeModification:
    edge_id: str
    before: MapEdge
    after: MapEdge
    changes: list[str]


@dataclass
class GraphDiff:
    added_nodes: list[MapNode] = field(default_factory=lambda: [])
    removed_nodes: list[MapNode] = field(default_factory=lambda: [])
    modified_nodes: list[NodeModification] = field(default_factory=lambda: [])
    added_edges: list[MapEdge] = field(default_factory=lambda: [])
    removed_edges: list[MapEdge] = field(default_factory=lambda: [])
    modified_edges: list[EdgeModification] = field(default_factory=lambda: [])

    @property
    def has_changes(self) -> bool:
        return any((
            self.added_nodes, self.removed_nodes, self.modified_nodes,
            self.added_edges, self.removed_edges, self.modified_edges,
        ))


def node_changes(before: MapNode, after: MapNode) -> list[str]:
    changes: list[str] = []
    if before.kind != after.kind:
        changes.append(f"kind: {before.kind} -> {after.kind}")
    if before.url != after.url:
        changes.append(f"url: {before.url} -> {after.url}")
    if before.title != after.title:
        changes.append(f"title: {before.title} -> {after.title}")
    if before.tags != after.tags:
        added = [t for t in after.tags if t not in before.tags]
        removed = [t for t in before.tags if t not in after.tags]
        if added:
            changes.append(f"tags added: {', '.join(added)}")
        if removed:
            changes.append(f"tags removed: {', '.join(removed)}")
    if before.attributes != after.attributes:
        changes.append("attributes changed")
    return changes


def edge_changes(before: MapEdge, after: MapEdge) -> list[str]:
    changes: list[str] = []
    if before.kind != after.kind:
        changes.append(f"kind: {before.kind} -> {after.kind}")
    if before.from_ != after.from_:
        changes.append(f"from: {before.from_} -> {after.from_}")
    if before.to != after.to:
        changes.append(f"to: {before.to} -> {after.to}")
    if before.label != after.label:
        changes.append(f"label: {before.label} -> {after.label}")
    if before.attributes != after.attributes:
        changes.append("attributes changed")
    return changes


def compare(before: MapGraph, after: MapGraph) -> GraphDiff:
    """Diff two graphs by node and edge id.

    Timestamps are not compared, so graphs of two sessions over the same
    pages come out unchanged.
    """
    before_nodes = {n.id: n for n in before.nodes}
    after_nodes = {n.id: n for n in after.nodes}
    before_edges = {e.id: e for e in before.edges}
    after_edges = {e.id: e for e in after.edges}

    diff = GraphDiff(
        added_nodes=[n for n in after.nodes if n.id not in before_nodes],
        removed_nodes=[n for n in before.nodes if n.id not in after_nodes],
        added_edges=[e for e in after.edges if e.id not in before_edges],
        removed_edges=[e for e in before.edges if e.id not in after_edges],
    )
    for nid, old in before_nodes.items():
        new = after_nodes.get(nid)
        if new is not None and (changes := node_changes(old, new)):
            diff.modified_nodes.append(NodeModification(nid, old, new, changes))
    for eid, old_edge in before_edges.items():
        new_edge = after_edges.get(eid)
        if new_edge is not None and (changes := edge_changes(old_edge, new_edge)):
            diff.modified_edges.append(EdgeModification(eid, old_edge, new_edge, changes))
    return diff
