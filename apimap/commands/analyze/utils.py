"""URL normalization and path-pattern utilities shared by the analyzers."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Iterator
from urllib.parse import unquote_plus, urlsplit

from apimap.helpers.http import get_header as get_header

_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")


@dataclass
class ParsedUrl:
    """Components of an absolute URL. A malformed URL parses to all-empty fields."""

    scheme: str = ""
    host: str = ""
    netloc: str = ""
    path: str = ""
    path_segments: list[str] = field(default_factory=lambda: [])
    query_params: dict[str, str] = field(default_factory=lambda: {})

    @property
    def origin(self) -> str:
        if not self.scheme or not self.netloc:
            return ""
        return f"{self.scheme}://{self.netloc}"


def normalize(raw_url: str) -> str:
    """Strip the fragment; the query string is kept as-is."""
    return raw_url.strip().split("#", 1)[0]


def parse(url: str) -> ParsedUrl:
    """Parse an absolute URL. Never raises: malformed input yields an empty ParsedUrl."""
    try:
        parts = urlsplit(normalize(url))
        host = parts.hostname or ""
    except ValueError:
        return ParsedUrl()
    if not parts.scheme or not host:
        return ParsedUrl()

    path = parts.path or "/"
    return ParsedUrl(
        scheme=parts.scheme.lower(),
        host=host,
        netloc=parts.netloc.lower(),
        path=path,
        path_segments=[s for s in path.split("/") if s],
        query_params=parse_query(parts.query),
    )


def parse_query(query: str) -> dict[str, str]:
    """Parse ``a=1&b=2``; entries without ``=`` are ignored, the last duplicate wins."""
    params: dict[str, str] = {}
    if not query:
        return params
    for pair in query.split("&"):
        name, sep, value = pair.partition("=")
        if not sep or not name:
            continue
        params[unquote_plus(name)] = unquote_plus(value)
    return params


def placeholder_names(pattern: str) -> list[str]:
    """Names of ``{param}`` placeholders in order of appearance."""
    return _PLACEHOLDER_RE.findall(pattern)


def pattern_to_regex(pattern: str, capture: bool = False) -> re.Pattern[str]:
    """Convert a path pattern like /api/users/{user_id}/orders to a regex.

    With *capture*, each placeholder becomes a positional group.
    """
    parts = _PLACEHOLDER_RE.split(pattern)[::2]
    segment = r"([^/]+)" if capture else r"[^/]+"

    regex = ""
    for i, part in enumerate(parts):
        regex += re.escape(part)
        if i < len(parts) - 1:
            regex += segment

    return re.compile(f"^{regex}$")


def match_path_values(pattern: str, path: str) -> dict[str, str] | None:
    """Map placeholder names to the values found in *path*, or None if it doesn't match."""
    m = pattern_to_regex(pattern, capture=True).match(path)
    if m is None:
        return None
    return dict(zip(placeholder_names(pattern), m.groups()))


def walk_json(data: Any, path: str = "$") -> Iterator[tuple[str, str | None, Any]]:
    """Yield ``(json_path, key, value)`` for every node below *data*, depth first.

    Object members come out as ``$.a.b``, array elements as ``$.items[0]``.
    """
    if isinstance(data, dict):
        for key, value in data.items():
            child = f"{path}.{key}"
            yield child, str(key), value
            yield from walk_json(value, child)
    elif isinstance(data, list):
        for i, value in enumerate(data):
            child = f"{path}[{i}]"
            yield child, None, value
            yield from walk_json(value, child)
