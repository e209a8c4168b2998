"""Step: Detect the authentication schemes used across a capture.

Several schemes can coexist (a session cookie for the web app plus an API
key for a third-party widget, say), so every detector runs independently
and contributes its own patterns.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import parse_qs

from apimap.commands.analyze.steps.base import MechanicalStep
from apimap.commands.analyze.utils import get_header, parse, walk_json
from apimap.formats.blueprint import (
    ApiKeyPattern,
    AuthPattern,
    BasicAuthPattern,
    BearerTokenPattern,
    OAuth2Pattern,
    SessionCookiePattern,
    TokenSource,
)
from apimap.formats.capture import Exchange
from apimap.helpers.http import (
    get_all_headers,
    is_session_cookie,
    parse_cookie_header,
    set_cookie_domain,
    set_cookie_name,
)

logger = logging.getLogger(__name__)

BEARER_HEADERS = frozenset({"authorization", "x-auth-token", "x-access-token"})
API_KEY_HEADERS = frozenset({"x-api-key", "api-key", "apikey", "x-api-secret"})
TOKEN_PREFIXES = ("Bearer", "Token")

QUERY_KEY_RE = re.compile(r"key|token|api", re.I)
OAUTH_TOKEN_PATH_RE = re.compile(r"/(?:oauth2?/|auth/)?token/?$", re.I)

COMMON_TOKEN_KEYS = (
    "access_token", "accessToken", "token", "id_token", "idToken",
    "refresh_token", "refreshToken", "jwt", "bearer",
)


def is_api_key_header(name: str) -> bool:
    lower = name.lower()
    return lower in API_KEY_HEADERS or ("api" in lower and "key" in lower)


def detect_bearer(exchanges: list[Exchange]) -> BearerTokenPattern | None:
    for ex in exchanges:
        for h in ex.request.headers:
            if h.name.lower() not in BEARER_HEADERS:
                continue
            value = h.value.strip()
            for prefix in TOKEN_PREFIXES:
                if value.lower().startswith(prefix.lower() + " "):
                    token = value[len(prefix) + 1:].strip()
                    return BearerTokenPattern(
                        header_name=h.name,
                        token_prefix=prefix,
                        token_source=find_token_source(exchanges, token) if token else None,
                    )
    return None


def detect_basic(exchanges: list[Exchange]) -> BasicAuthPattern | None:
    for ex in exchanges:
        auth = get_header(ex.request.headers, "authorization")
        if auth is not None and auth.strip().lower().startswith("basic "):
            return BasicAuthPattern()
    return None


def detect_api_keys(exchanges: list[Exchange]) -> list[ApiKeyPattern]:
    """API keys sent as headers or query parameters, one pattern per distinct name."""
    patterns: list[ApiKeyPattern] = []
    found: set[tuple[str, str]] = set()
    for ex in exchanges:
        for h in ex.request.headers:
            key = ("header", h.name.lower())
            if is_api_key_header(h.name) and key not in found:
                found.add(key)
                patterns.append(ApiKeyPattern(location="header", parameter_name=h.name))
        for name in parse(ex.request.url).query_params:
            key = ("query", name)
            if QUERY_KEY_RE.search(name) and key not in found:
                found.add(key)
                patterns.append(ApiKeyPattern(location="query", parameter_name=name))
    return patterns


def cookie_domains(exchanges: list[Exchange]) -> dict[str, str]:
    """Cookie name -> ``Domain`` attribute, from the responses that set them."""
    domains: dict[str, str] = {}
    for ex in exchanges:
        if ex.response is None:
            continue
        for value in get_all_headers(ex.response.headers, "set-cookie"):
            name = set_cookie_name(value)
            domain = set_cookie_domain(value)
            if name and domain:
                domains.setdefault(name, domain)
    return domains


def detect_session_cookies(exchanges: list[Exchange]) -> list[SessionCookiePattern]:
    """Session-like cookies sent by the client; domain from Set-Cookie, else the request host."""
    domains = cookie_domains(exchanges)
    patterns: list[SessionCookiePattern] = []
    found: set[str] = set()
    for ex in exchanges:
        cookie_header = get_header(ex.request.headers, "cookie")
        if cookie_header is None:
            continue
        for name in parse_cookie_header(cookie_header):
            if name in found or not is_session_cookie(name):
                continue
            found.add(name)
            domain = domains.get(name) or parse(ex.request.url).host or None
            patterns.append(SessionCookiePattern(cookie_name=name, domain=domain))
    return patterns


def detect_oauth2(exchanges: list[Exchange]) -> OAuth2Pattern | None:
    """First POST to a token endpoint, with grant type and scopes read from its body."""
    for ex in exchanges:
        if ex.request.method.upper() != "POST":
            continue
        if not OAUTH_TOKEN_PATH_RE.search(parse(ex.request.url).path):
            continue
        body = ex.request.body or ""
        grant_type = _body_value(body, "grant_type")
        scope = _body_value(body, "scope") or ""
        return OAuth2Pattern(
            token_endpoint=ex.request.url,
            grant_type=grant_type or "unknown",
            scopes=[s for s in scope.split(" ") if s],
        )
    return None


def _body_value(body: str, key: str) -> str | None:
    """Read *key* from a JSON object body, falling back to form encoding."""
    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        data = None
    if isinstance(data, dict):
        value = data.get(key)
        return str(value) if value is not None else None
    values = parse_qs(body).get(key)
    return values[0] if values else None


def find_token_source(exchanges: list[Exchange], token: str) -> TokenSource | None:
    """Locate the response that handed out *token*: JSON bodies first, then headers."""
    for ex in exchanges:
        if ex.response is None or not ex.response.body or token not in ex.response.body:
            continue
        return TokenSource(exchange_id=ex.exchange_id, json_path=_find_json_path(ex.response.body, token))

    for ex in exchanges:
        if ex.response is None:
            continue
        for h in ex.response.headers:
            if token in h.value:
                return TokenSource(exchange_id=ex.exchange_id, header_name=h.name)
    return None


def _find_json_path(body: str, token: str) -> str | None:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None
    for path, _, value in walk_json(data):
        if value == token:
            return path
    for path, key, _ in walk_json(data):
        if key in COMMON_TOKEN_KEYS:
            return path
    return None


def detect_auth_patterns(exchanges: list[Exchange]) -> list[AuthPattern]:
    """Run every detector; order is bearer, basic, api keys, session cookies, oauth2."""
    patterns: list[AuthPattern] = []
    bearer = detect_bearer(exchanges)
    if bearer is not None:
        patterns.append(bearer)
    basic = detect_basic(exchanges)
    if basic is not None:
        patterns.append(basic)
    patterns.extend(detect_api_keys(exchanges))
    patterns.extend(detect_session_cookies(exchanges))
    oauth2 = detect_oauth2(exchanges)
    if oauth2 is not None:
        patterns.append(oauth2)
    logger.debug("Detected %d auth pattern(s)", len(patterns))
    return patterns


class DetectAuthStep(MechanicalStep[list[Exchange], list[AuthPattern]]):
    """Detect authentication patterns over all exchanges of a capture."""

    name = "detect_auth"

    def _execute(self, input: list[Exchange]) -> list[AuthPattern]:
        return detect_auth_patterns(input)
