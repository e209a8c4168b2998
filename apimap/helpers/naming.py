"""Identifier and naming utilities shared across analyzers."""

from __future__ import annotations

import hashlib
import re


def stable_id(prefix: str, *parts: object) -> str:
    """Build a deterministic id from *parts*.

    The same inputs always yield the same id, so ids computed from two
    independent captures of the same site line up when compared.
    """
    digest = hashlib.sha1(
        "\x1f".join(str(p) for p in parts).encode("utf-8")
    ).hexdigest()
    return f"{prefix}_{digest[:12]}"


def to_identifier(name: str, *, fallback: str = "unknown") -> str:
    """Clean a name into a valid identifier (snake_case).

    Strips non-alphanumeric chars, collapses underscores, strips leading/trailing.
    Returns *fallback* if the result is empty.
    """
    name = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    return name or fallback


def to_camel(word: str) -> str:
    """``order_item`` or ``order-item`` -> ``orderItem``."""
    parts = [p for p in re.split(r"[^a-zA-Z0-9]+", word) if p]
    if not parts:
        return ""
    return parts[0].lower() + "".join(p.capitalize() for p in parts[1:])


def singularize(word: str) -> str:
    """Naive English singular: ``categories`` -> ``category``, ``posts`` -> ``post``."""
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es"):
        return word[:-2]
    if word.endswith("s"):
        return word[:-1]
    return word


def endpoint_slug(method: str, path_template: str) -> str:
    """Readable endpoint name: ``GET /api/items/{itemId}`` -> ``get_api_items_itemId``."""
    path_part = path_template.replace("{", "").replace("}", "")
    return f"{method.lower()}_{to_identifier(path_part, fallback='root')}"


def make_endpoint_id(method: str, host: str, path_template: str) -> str:
    """Endpoint id, unique per (method, host, path template)."""
    digest = stable_id("ep", method.upper(), host.lower(), path_template)
    return f"{endpoint_slug(method, path_template)}_{digest[3:11]}"


def node_id(normalized_url: str) -> str:
    """Graph node id for a (fragment-stripped) URL."""
    return stable_id("n", normalized_url)


def edge_id(from_id: str, to_id: str, kind: str, label: str | None) -> str:
    return stable_id("e", from_id, to_id, kind, label or "")
