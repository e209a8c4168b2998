"""Tests for apimap/helpers/http.py."""

from apimap.formats.capture import Header
from apimap.helpers.http import (
    get_all_headers,
    get_header,
    is_json_media_type,
    is_session_cookie,
    media_type,
    parse_cookie_header,
    set_cookie_domain,
    set_cookie_name,
)


class TestGetHeader:
    def test_case_insensitive(self) -> None:
        headers = [Header(name="Content-Type", value="application/json")]
        assert get_header(headers, "content-type") == "application/json"

    def test_first_match_wins(self) -> None:
        headers = [Header(name="X-A", value="1"), Header(name="x-a", value="2")]
        assert get_header(headers, "X-A") == "1"

    def test_missing(self) -> None:
        assert get_header([], "Authorization") is None

    def test_all_values(self) -> None:
        headers = [
            Header(name="Set-Cookie", value="a=1"),
            Header(name="Other", value="x"),
            Header(name="set-cookie", value="b=2"),
        ]
        assert get_all_headers(headers, "Set-Cookie") == ["a=1", "b=2"]


class TestMediaType:
    def test_strips_parameters(self) -> None:
        headers = [Header(name="Content-Type", value="Application/JSON; charset=utf-8")]
        assert media_type(headers) == "application/json"

    def test_missing(self) -> None:
        assert media_type([]) is None

    def test_json_detection(self) -> None:
        assert is_json_media_type("application/json")
        assert is_json_media_type("application/vnd.api+json")
        assert not is_json_media_type("text/html")
        assert not is_json_media_type(None)


class TestCookies:
    def test_parse_cookie_header(self) -> None:
        assert parse_cookie_header("sid=abc; theme=dark") == {"sid": "abc", "theme": "dark"}

    def test_parse_cookie_header_skips_junk(self) -> None:
        assert parse_cookie_header("novalue; a=1") == {"a": "1"}

    def test_set_cookie_name(self) -> None:
        assert set_cookie_name("session_id=xyz; Path=/; HttpOnly") == "session_id"
        assert set_cookie_name("garbage") is None

    def test_set_cookie_domain(self) -> None:
        assert set_cookie_domain("sid=1; Domain=.example.com; Path=/") == "example.com"
        assert set_cookie_domain("sid=1; Path=/") is None

    def test_is_session_cookie(self) -> None:
        for name in ("sessionid", "PHPSESSID", "jwt", "auth_token", "access"):
            assert is_session_cookie(name), name
        assert not is_session_cookie("theme")
        assert not is_session_cookie("lang")
