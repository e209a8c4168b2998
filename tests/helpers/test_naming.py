"""Tests for apimap/helpers/naming.py."""

from apimap.helpers.naming import (
    edge_id,
    endpoint_slug,
    make_endpoint_id,
    node_id,
    singularize,
    stable_id,
    to_camel,
    to_identifier,
)


class TestStableId:
    def test_deterministic(self) -> None:
        assert stable_id("flow", "a", "b") == stable_id("flow", "a", "b")

    def test_prefix(self) -> None:
        assert stable_id("bp", "x").startswith("bp_")

    def test_order_matters(self) -> None:
        assert stable_id("flow", "a", "b") != stable_id("flow", "b", "a")

    def test_parts_are_separated(self) -> None:
        assert stable_id("x", "ab", "c") != stable_id("x", "a", "bc")


class TestToIdentifier:
    def test_cleanup(self) -> None:
        assert to_identifier("get--users!!") == "get_users"

    def test_empty_uses_fallback(self) -> None:
        assert to_identifier("", fallback="root") == "root"
        assert to_identifier("---") == "unknown"


class TestToCamel:
    def test_separators(self) -> None:
        assert to_camel("order_item") == "orderItem"
        assert to_camel("order-item") == "orderItem"

    def test_single_word(self) -> None:
        assert to_camel("User") == "user"

    def test_empty(self) -> None:
        assert to_camel("--") == ""


class TestSingularize:
    def test_plain_s(self) -> None:
        assert singularize("posts") == "post"

    def test_ies(self) -> None:
        assert singularize("categories") == "category"

    def test_es(self) -> None:
        assert singularize("addresses") == "address"

    def test_already_singular(self) -> None:
        assert singularize("user") == "user"


class TestEndpointNaming:
    def test_slug(self) -> None:
        assert endpoint_slug("GET", "/api/items/{itemId}") == "get_api_items_itemId"

    def test_slug_root(self) -> None:
        assert endpoint_slug("GET", "/") == "get_root"

    def test_endpoint_id_stable(self) -> None:
        a = make_endpoint_id("GET", "api.example.com", "/api/items/{itemId}")
        b = make_endpoint_id("get", "API.example.com", "/api/items/{itemId}")
        assert a == b
        assert a.startswith("get_api_items_itemId_")

    def test_endpoint_id_differs_by_host(self) -> None:
        a = make_endpoint_id("GET", "a.example.com", "/x")
        b = make_endpoint_id("GET", "b.example.com", "/x")
        assert a != b

    def test_endpoint_id_differs_by_method(self) -> None:
        assert make_endpoint_id("GET", "h", "/x") != make_endpoint_id("POST", "h", "/x")


class TestGraphIds:
    def test_node_id(self) -> None:
        assert node_id("https://example.com/a") == node_id("https://example.com/a")
        assert node_id("https://example.com/a") != node_id("https://example.com/b")

    def test_edge_id_label(self) -> None:
        assert edge_id("a", "b", "Link", None) == edge_id("a", "b", "Link", "")
        assert edge_id("a", "b", "Xhr", "GET") != edge_id("a", "b", "Xhr", "POST")
