"""Tests for apimap/commands/graph/hubs.py."""

import logging

import networkx as nx
import pytest

from apimap.commands.graph.hubs import (
    NodeMetrics,
    adjacency,
    analyze_graph,
    balance,
    betweenness_centrality,
    hub_score,
    hub_tag,
    tag_hubs,
)
from apimap.formats.graph import MapEdge, MapGraph
from tests.conftest import make_graph


def _to_networkx(graph: MapGraph) -> nx.DiGraph:
    g = nx.DiGraph()
    g.add_nodes_from(n.id for n in graph.nodes)
    g.add_edges_from((e.from_, e.to) for e in graph.edges)
    return g


class TestBetweenness:
    def test_chain(self) -> None:
        btw = betweenness_centrality(make_graph([("A", "B"), ("B", "C")]))
        assert btw == {"A": 0.0, "B": 1.0, "C": 0.0}

    def test_matches_networkx(self) -> None:
        graph = make_graph([
            ("home", "a"), ("home", "b"), ("a", "c"), ("b", "c"),
            ("c", "d"), ("d", "home"), ("a", "d"), ("e", "c"),
        ])
        expected = nx.betweenness_centrality(_to_networkx(graph), normalized=False)
        actual = betweenness_centrality(graph)
        for nid, value in expected.items():
            assert actual[nid] == pytest.approx(value)

    def test_parallel_edges_count_once(self) -> None:
        graph = make_graph([("A", "B"), ("B", "C")])
        graph.edges.append(MapEdge(id="dup", kind="Xhr", from_="A", to="B"))
        assert betweenness_centrality(graph)["B"] == 1.0

    def test_sampling_is_seeded(self) -> None:
        graph = make_graph([(str(i), str(i + 1)) for i in range(20)])
        first = betweenness_centrality(graph, sample_size=5)
        second = betweenness_centrality(graph, sample_size=5)
        assert first == second

    def test_sample_larger_than_graph_is_exact(self) -> None:
        graph = make_graph([("A", "B"), ("B", "C")])
        assert betweenness_centrality(graph, sample_size=10) == betweenness_centrality(graph)

    def test_empty(self) -> None:
        assert betweenness_centrality(MapGraph()) == {}


class TestScores:
    def test_balance(self) -> None:
        assert balance(0, 5) == 0.0
        assert balance(3, 3) == 1.0
        assert balance(1, 3) == 0.5

    def test_hub_score(self) -> None:
        assert hub_score("Page", 1, 1, 1.0) == pytest.approx(1.4)
        assert hub_score("Asset", 1, 1, 1.0) == pytest.approx(1.4 * 0.3)

    def test_analyze_graph(self) -> None:
        metrics = analyze_graph(make_graph([("A", "B"), ("B", "C")]))
        assert metrics["B"].in_degree == 1
        assert metrics["B"].out_degree == 1
        assert metrics["B"].hub_score == pytest.approx(1.4)
        assert metrics["A"].hub_score == pytest.approx(0.4)

    def test_parallel_edges_counted_in_degrees(self) -> None:
        graph = make_graph([("A", "B")])
        graph.edges.append(MapEdge(id="dup", kind="Xhr", from_="A", to="B"))
        metrics = analyze_graph(graph)
        assert metrics["A"].out_degree == 2
        assert metrics["B"].in_degree == 2

    def test_dangling_edge_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        graph = make_graph([("A", "B")])
        graph.edges.append(MapEdge(id="ghost", from_="A", to="nowhere"))
        with caplog.at_level(logging.WARNING):
            adj = adjacency(graph)
        assert adj == {"A": ["B"], "B": []}
        assert "unknown node" in caplog.text


class TestHubTags:
    def test_tag_kinds(self) -> None:
        assert hub_tag(NodeMetrics("n", 0, 10, 0.0, 9.0)) == "hub:homepage"
        assert hub_tag(NodeMetrics("n", 6, 6, 0.0, 9.0)) == "hub:navigation"
        assert hub_tag(NodeMetrics("n", 10, 2, 0.0, 9.0)) == "hub:important"
        assert hub_tag(NodeMetrics("n", 3, 3, 0.0, 9.0)) == "hub"

    def test_star_homepage(self) -> None:
        graph = make_graph([("home", f"leaf{i}") for i in range(13)])
        tagged = tag_hubs(graph)
        home = tagged.get_node("home")
        assert home is not None
        assert home.tags == ["hub:homepage"]
        assert all(not n.tags for n in tagged.nodes if n.id != "home")

    def test_original_untouched_and_idempotent(self) -> None:
        graph = make_graph([("home", f"leaf{i}") for i in range(13)])
        once = tag_hubs(graph)
        twice = tag_hubs(once)
        assert all(not n.tags for n in graph.nodes)
        home = twice.get_node("home")
        assert home is not None
        assert home.tags == ["hub:homepage"]

    def test_threshold(self) -> None:
        graph = make_graph([("A", "B"), ("B", "C")])
        assert all(not n.tags for n in tag_hubs(graph).nodes)
        tagged = tag_hubs(graph, threshold=1.0)
        b = tagged.get_node("B")
        assert b is not None
        assert b.tags == ["hub"]
