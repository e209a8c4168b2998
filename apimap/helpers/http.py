"""HTTP header utilities."""

from __future__ import annotations

import re

from apimap.formats.capture import Header

SESSION_COOKIE_RE = re.compile(r"session|sid|token|auth|jwt|access", re.I)


def get_header(headers: list[Header], name: str) -> str | None:
    """Get a header value by name (case-insensitive, first match wins)."""
    name_lower = name.lower()
    for h in headers:
        if h.name.lower() == name_lower:
            return h.value
    return None


def get_all_headers(headers: list[Header], name: str) -> list[str]:
    """Get every value of a repeated header such as Set-Cookie."""
    name_lower = name.lower()
    return [h.value for h in headers if h.name.lower() == name_lower]


def media_type(headers: list[Header]) -> str | None:
    """Return the Content-Type without its parameters, lowercased."""
    value = get_header(headers, "content-type")
    if not value:
        return None
    return value.split(";", 1)[0].strip().lower() or None


def is_json_media_type(value: str | None) -> bool:
    return value is not None and "json" in value.lower()


def parse_cookie_header(value: str) -> dict[str, str]:
    """Parse a request ``Cookie`` header into name -> value."""
    cookies: dict[str, str] = {}
    for part in value.split(";"):
        name, sep, val = part.strip().partition("=")
        if sep and name:
            cookies[name] = val
    return cookies


def set_cookie_name(value: str) -> str | None:
    """Return the cookie name of a ``Set-Cookie`` header value."""
    first = value.split(";", 1)[0]
    name, sep, _ = first.partition("=")
    name = name.strip()
    return name if sep and name else None


def set_cookie_domain(value: str) -> str | None:
    """Return the ``Domain`` attribute of a ``Set-Cookie`` header value."""
    for attr in value.split(";")[1:]:
        key, _, val = attr.strip().partition("=")
        if key.lower() == "domain" and val:
            return val.lstrip(".")
    return None


def is_session_cookie(name: str) -> bool:
    """Whether a cookie name looks like it carries a session or token."""
    return SESSION_COOKIE_RE.search(name) is not None
