"""Step: Keep the exchanges that belong to an API."""

from __future__ import annotations

import logging
import re

from apimap.commands.analyze.steps.base import MechanicalStep
from apimap.commands.analyze.steps.types import ExchangeFilterInput
from apimap.commands.analyze.utils import parse
from apimap.formats.capture import Exchange
from apimap.helpers.http import is_json_media_type, media_type

logger = logging.getLogger(__name__)

STATIC_EXTENSIONS = (
    ".js", ".css", ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg",
    ".woff", ".woff2", ".ttf",
)
API_PATH_MARKERS = ("/api/", "/v1/", "/v2/", "/v3/", "/v4/")
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_METHOD_RE = re.compile(r"^[A-Za-z]+$")


def is_static_asset(url: str) -> bool:
    path = parse(url).path.lower()
    return path.endswith(STATIC_EXTENSIONS)


def is_api_request(exchange: Exchange) -> bool:
    """Heuristic: JSON payloads, API-looking paths and write methods are API calls."""
    if is_static_asset(exchange.request.url):
        return False

    content_type = media_type(exchange.response.headers) if exchange.response else None
    if content_type is None:
        content_type = media_type(exchange.request.headers)
    if is_json_media_type(content_type):
        return True

    path = parse(exchange.request.url).path
    if any(marker in path + "/" for marker in API_PATH_MARKERS):
        return True

    return exchange.request.method.upper() in WRITE_METHODS


def is_well_formed(exchange: Exchange) -> bool:
    """An exchange we can analyze: absolute URL and a token-like method."""
    return bool(parse(exchange.request.url).host) and bool(
        _METHOD_RE.match(exchange.request.method)
    )


class FilterExchangesStep(MechanicalStep[ExchangeFilterInput, list[Exchange]]):
    """Drop malformed exchanges and, when asked, everything that isn't an API call.

    Output is sorted by start time so later grouping is deterministic.
    """

    name = "filter_exchanges"

    def _execute(self, input: ExchangeFilterInput) -> list[Exchange]:
        kept: list[Exchange] = []
        seen_ids: set[str] = set()
        for ex in input.exchanges:
            if ex.exchange_id in seen_ids:
                logger.debug("Excluding duplicate exchange id %s", ex.exchange_id)
                continue
            seen_ids.add(ex.exchange_id)
            if not is_well_formed(ex):
                logger.debug(
                    "Excluding malformed exchange %s (%s %s)",
                    ex.exchange_id, ex.request.method, ex.request.url,
                )
                continue
            if input.api_only and not is_api_request(ex):
                continue
            kept.append(ex)
        return sorted(kept, key=lambda e: (e.started_at, e.exchange_id))
