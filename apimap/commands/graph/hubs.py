"""Hub detection: score nodes by connectivity, betweenness and in/out balance.

Typical hubs are a homepage (many links out, few in), navigation pages
(many links both ways) and heavily used endpoints (many links in).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import random

from apimap.formats.graph import MapGraph, NodeKind

logger = logging.getLogger(__name__)

CONNECTIVITY_WEIGHT = 0.4
BETWEENNESS_WEIGHT = 0.3
BALANCE_WEIGHT = 0.3

DEFAULT_HUB_THRESHOLD = 5.0
NAVIGATION_HUB_MIN_DEGREE = 5
DEGREE_RATIO_THRESHOLD = 2

EXHAUSTIVE_NODE_LIMIT = 500

KIND_WEIGHTS: dict[str, float] = {
    "Page": 1.0,
    "ApiEndpoint": 0.8,
    "Document": 0.6,
    "Form": 0.7,
}
DEFAULT_KIND_WEIGHT = 0.3


@dataclass
class NodeMetrics:
    node_id: str
    in_degree: int
    out_degree: int
    betweenness: float
    hub_score: float


def adjacency(graph: MapGraph) -> dict[str, list[str]]:
    """Successor lists; edges touching unknown nodes are skipped with a warning."""
    known = graph.node_ids()
    adj: dict[str, list[str]] = {nid: [] for nid in known}
    for edge in graph.edges:
        if edge.from_ not in known or edge.to not in known:
            logger.warning(
                "Edge %s references unknown node (%s -> %s); skipped", edge.id, edge.from_, edge.to
            )
            continue
        adj[edge.from_].append(edge.to)
    return adj


def betweenness_centrality(
    graph: MapGraph, sample_size: int | None = None, seed: int | None = 0
) -> dict[str, float]:
    """Directed, unnormalized betweenness (Brandes).

    With *sample_size*, only that many sources are used and the result is
    scaled by ``n / sample_size``.
    """
    return _betweenness(adjacency(graph), [n.id for n in graph.nodes], sample_size, seed)


def _betweenness(
    successors: dict[str, list[str]], nodes: list[str], sample_size: int | None, seed: int | None
) -> dict[str, float]:
    # parallel edges count once for shortest paths
    adj = {v: list(dict.fromkeys(ws)) for v, ws in successors.items()}
    betweenness: dict[str, float] = {nid: 0.0 for nid in nodes}

    sources = nodes
    scale = 1.0
    if sample_size is not None and 0 < sample_size < len(nodes):
        sources = random.Random(seed).sample(nodes, sample_size)
        scale = len(nodes) / sample_size
    elif len(nodes) > EXHAUSTIVE_NODE_LIMIT:
        logger.warning(
            "Exact betweenness on %d nodes is O(V*E); pass sample_size to bound it", len(nodes)
        )

    for source in sources:
        # forward pass: BFS counting shortest paths
        distance: dict[str, int] = {source: 0}
        paths: dict[str, int] = {source: 1}
        predecessors: dict[str, list[str]] = {}
        stack: list[str] = []
        queue: deque[str] = deque([source])
        while queue:
            v = queue.popleft()
            stack.append(v)
            for w in adj.get(v, []):
                if w not in distance:
                    distance[w] = distance[v] + 1
                    queue.append(w)
                if distance[w] == distance[v] + 1:
                    paths[w] = paths.get(w, 0) + paths[v]
                    predecessors.setdefault(w, []).append(v)

        # backward pass: accumulate dependencies in reverse BFS order
        delta: dict[str, float] = {}
        while stack:
            w = stack.pop()
            for v in predecessors.get(w, []):
                if paths.get(w, 0) <= 0 or paths.get(v, 0) <= 0:
                    logger.warning("Inconsistent path counts at %s; contribution skipped", w)
                    continue
                delta[v] = delta.get(v, 0.0) + paths[v] / paths[w] * (1.0 + delta.get(w, 0.0))
            if w != source:
                betweenness[w] += delta.get(w, 0.0)

    if scale != 1.0:
        betweenness = {nid: b * scale for nid, b in betweenness.items()}
    return betweenness


def balance(in_degree: int, out_degree: int) -> float:
    if in_degree == 0 or out_degree == 0:
        return 0.0
    return 1.0 - abs(in_degree - out_degree) / (in_degree + out_degree)


def hub_score(kind: NodeKind, in_degree: int, out_degree: int, betweenness: float) -> float:
    weight = KIND_WEIGHTS.get(kind, DEFAULT_KIND_WEIGHT)
    return (
        CONNECTIVITY_WEIGHT * (in_degree + out_degree)
        + BETWEENNESS_WEIGHT * betweenness
        + BALANCE_WEIGHT * balance(in_degree, out_degree)
    ) * weight


def analyze_graph(graph: MapGraph, sample_size: int | None = None) -> dict[str, NodeMetrics]:
    """Degree, betweenness and hub score of every node."""
    adj = adjacency(graph)
    in_degree: dict[str, int] = {nid: 0 for nid in adj}
    for targets in adj.values():
        for target in targets:
            in_degree[target] += 1

    btw = _betweenness(adj, [n.id for n in graph.nodes], sample_size, 0)
    metrics: dict[str, NodeMetrics] = {}
    for node in graph.nodes:
        ind = in_degree.get(node.id, 0)
        outd = len(adj.get(node.id, []))
        metrics[node.id] = NodeMetrics(
            node_id=node.id,
            in_degree=ind,
            out_degree=outd,
            betweenness=btw.get(node.id, 0.0),
            hub_score=hub_score(node.kind, ind, outd, btw.get(node.id, 0.0)),
        )
    return metrics


def hub_tag(metric: NodeMetrics) -> str:
    if metric.out_degree > metric.in_degree * DEGREE_RATIO_THRESHOLD:
        return "hub:homepage"
    if metric.in_degree > NAVIGATION_HUB_MIN_DEGREE and metric.out_degree > NAVIGATION_HUB_MIN_DEGREE:
        return "hub:navigation"
    if metric.in_degree > metric.out_degree * DEGREE_RATIO_THRESHOLD:
        return "hub:important"
    return "hub"


def tag_hubs(
    graph: MapGraph,
    threshold: float = DEFAULT_HUB_THRESHOLD,
    sample_size: int | None = None,
) -> MapGraph:
    """Copy of *graph* with a hub tag added to every node scoring at least *threshold*.

    Existing tags are kept and a tag is never added twice.
    """
    metrics = analyze_graph(graph, sample_size)
    tagged = graph.model_copy(deep=True)
    for node in tagged.nodes:
        metric = metrics.get(node.id)
        if metric is None or metric.hub_score < threshold:
            continue
        tag = hub_tag(metric)
        if tag not in node.tags:
            node.tags.append(tag)
    return tagged
