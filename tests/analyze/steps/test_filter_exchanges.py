"""Tests for apimap/commands/analyze/steps/filter_exchanges.py."""

from apimap.commands.analyze.steps.filter_exchanges import (
    FilterExchangesStep,
    is_api_request,
    is_static_asset,
    is_well_formed,
)
from apimap.commands.analyze.steps.types import ExchangeFilterInput
from apimap.formats.capture import Header
from tests.conftest import make_exchange

HTML = [Header(name="Content-Type", value="text/html")]


class TestIsApiRequest:
    def test_json_response(self) -> None:
        assert is_api_request(make_exchange("e1", "GET", "https://example.com/data"))

    def test_api_path(self) -> None:
        ex = make_exchange("e1", "GET", "https://example.com/api/things", response_headers=HTML)
        assert is_api_request(ex)

    def test_version_path(self) -> None:
        ex = make_exchange("e1", "GET", "https://example.com/v2/things", response_headers=HTML)
        assert is_api_request(ex)

    def test_write_method(self) -> None:
        ex = make_exchange("e1", "POST", "https://example.com/contact", response_headers=HTML)
        assert is_api_request(ex)

    def test_html_page(self) -> None:
        ex = make_exchange("e1", "GET", "https://example.com/about", response_headers=HTML)
        assert not is_api_request(ex)

    def test_static_asset_never_api(self) -> None:
        ex = make_exchange("e1", "GET", "https://example.com/api/bundle.js")
        assert not is_api_request(ex)

    def test_request_content_type_when_no_response(self) -> None:
        ex = make_exchange(
            "e1", "GET", "https://example.com/things", status=None,
            request_headers=[Header(name="Content-Type", value="application/json")],
        )
        assert is_api_request(ex)


class TestHelpers:
    def test_static_asset(self) -> None:
        assert is_static_asset("https://cdn.example.com/app.CSS?v=3")
        assert is_static_asset("https://example.com/fonts/a.woff2")
        assert not is_static_asset("https://example.com/api/css")

    def test_well_formed(self) -> None:
        assert is_well_formed(make_exchange("e1", "GET", "https://example.com/a"))
        assert not is_well_formed(make_exchange("e1", "GET", "/relative/path"))
        assert not is_well_formed(make_exchange("e1", "G E T", "https://example.com/a"))


class TestFilterExchangesStep:
    def test_api_only(self) -> None:
        exchanges = [
            make_exchange("page", "GET", "https://example.com/about", response_headers=HTML),
            make_exchange("api", "GET", "https://example.com/api/x"),
        ]
        result = FilterExchangesStep().run(ExchangeFilterInput(exchanges))
        assert [ex.exchange_id for ex in result] == ["api"]

    def test_keep_all(self) -> None:
        exchanges = [
            make_exchange("page", "GET", "https://example.com/about", response_headers=HTML),
            make_exchange("bad", "GET", "not-a-url"),
        ]
        result = FilterExchangesStep().run(ExchangeFilterInput(exchanges, api_only=False))
        assert [ex.exchange_id for ex in result] == ["page"]

    def test_sorted_and_deduplicated(self) -> None:
        exchanges = [
            make_exchange("b", "GET", "https://example.com/api/b", started_at=2000),
            make_exchange("a", "GET", "https://example.com/api/a", started_at=1000),
            make_exchange("a", "GET", "https://example.com/api/a2", started_at=500),
        ]
        result = FilterExchangesStep().run(ExchangeFilterInput(exchanges))
        assert [ex.exchange_id for ex in result] == ["a", "b"]
        assert result[0].request.url == "https://example.com/api/a"

    def test_empty(self) -> None:
        assert FilterExchangesStep().run(ExchangeFilterInput([])) == []
