"""Time-window correlation: user action -> HTTP exchanges and navigations."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from apimap.commands.analyze.utils import get_header, normalize
from apimap.commands.capture.types import CaptureBundle
from apimap.formats.capture import Exchange, NavigationEvent, UserActionEvent
from apimap.formats.website_map import (
    CorrelatedAction,
    ExchangeReference,
    NavigationOutcome,
    RedirectChain,
    RedirectHop,
    WebsiteMap,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 10_000


def window_end(action_at: int, next_action_at: int | None, window_ms: int) -> tuple[int, bool]:
    """End of an action's window and whether that end is inclusive.

    The window is cut at the next action when it comes sooner than *window_ms*
    (exclusive: events at the next action's instant belong to it);
    otherwise it spans the full timeout, end included.
    """
    if next_action_at is not None and next_action_at - action_at < window_ms:
        return next_action_at, False
    return action_at + window_ms, True


def _in_window(ts: int, start: int, end: int, inclusive: bool) -> bool:
    return start <= ts <= end if inclusive else start <= ts < end


def correlate(
    bundle: CaptureBundle,
    window_ms: int = DEFAULT_WINDOW_MS,
    generated_at: int | None = None,
) -> WebsiteMap:
    """Correlate user actions with the exchanges and navigations that followed them.

    Actions are processed in time order.  An action with nothing in its window
    still appears, with no exchange references.
    """
    actions = sorted(bundle.actions, key=lambda a: (a.at, a.id))
    navigations = sorted(bundle.navigations, key=lambda n: (n.at, n.id))
    exchanges = sorted(bundle.exchanges, key=lambda e: (e.started_at, e.exchange_id))

    correlated: list[CorrelatedAction] = []
    for i, action in enumerate(actions):
        next_at = actions[i + 1].at if i + 1 < len(actions) else None
        end, inclusive = window_end(action.at, next_at, window_ms)

        window_exchanges = [
            ex for ex in exchanges if _in_window(ex.started_at, action.at, end, inclusive)
        ]
        window_navigations = [
            nav for nav in navigations if _in_window(nav.at, action.at, end, inclusive)
        ]
        correlated.append(
            _correlate_action(action, window_exchanges, window_navigations)
        )

    correlated_ids = {ref.exchange_id for a in correlated for ref in a.exchange_refs}
    uncorrelated = [ex.exchange_id for ex in exchanges if ex.exchange_id not in correlated_ids]
    logger.debug(
        "Correlated %d/%d exchanges with %d actions",
        len(correlated_ids), len(exchanges), len(actions),
    )

    return WebsiteMap(
        session_id=bundle.manifest.capture_id,
        generated_at=generated_at if generated_at is not None else _last_timestamp(bundle),
        actions=correlated,
        total_exchanges=len(exchanges),
        correlated_exchanges=len(correlated_ids),
        uncorrelated_exchanges=uncorrelated,
    )


def _correlate_action(
    action: UserActionEvent,
    exchanges: list[Exchange],
    navigations: list[NavigationEvent],
) -> CorrelatedAction:
    return CorrelatedAction(
        action_id=action.id,
        timestamp=action.at,
        action_type=action.action,
        payload=dict(action.payload),
        navigation_outcome=navigation_outcome(navigations),
        exchange_refs=[exchange_reference(ex) for ex in exchanges],
        redirect_chains=build_redirect_chains(exchanges),
    )


def exchange_reference(ex: Exchange) -> ExchangeReference:
    return ExchangeReference(
        exchange_id=ex.exchange_id,
        url=ex.request.url,
        method=ex.request.method,
        status=ex.response.status if ex.response else None,
        is_redirect=ex.response.is_redirect if ex.response else False,
    )


def navigation_outcome(navigations: list[NavigationEvent]) -> NavigationOutcome | None:
    """The first navigation of the window; later redirect navigations form its chain."""
    if not navigations:
        return None
    first = navigations[0]
    chain: list[str] = []
    current_at = first.at
    for nav in navigations[1:]:
        if nav.at > current_at and nav.is_redirect:
            chain.append(nav.url)
            current_at = nav.at
    return NavigationOutcome(
        from_url=first.from_url,
        to_url=first.url,
        timestamp=first.at,
        is_redirect=first.is_redirect,
        redirect_chain=chain,
    )


def redirect_location(ex: Exchange) -> str | None:
    """Absolute redirect target of a 3xx exchange, or None."""
    if ex.response is None or not ex.response.is_redirect:
        return None
    location = ex.response.redirect_location or get_header(ex.response.headers, "location")
    if not location:
        return None
    return normalize(urljoin(ex.request.url, location))


def build_redirect_chains(exchanges: list[Exchange]) -> list[RedirectChain]:
    """Follow 3xx responses through their Location to later exchanges.

    Each exchange joins at most one chain, so redirect loops terminate.
    Chains of a single hop (target never requested) are dropped.
    """
    chains: list[RedirectChain] = []
    used: set[str] = set()
    for start in exchanges:
        if start.exchange_id in used or redirect_location(start) is None:
            continue

        hops: list[RedirectHop] = []
        current: Exchange | None = start
        while current is not None:
            used.add(current.exchange_id)
            location = redirect_location(current)
            hops.append(
                RedirectHop(
                    exchange_id=current.exchange_id,
                    url=current.request.url,
                    status=current.response.status if current.response else 0,
                    location=location,
                )
            )
            if location is None:
                break
            current = next(
                (
                    ex for ex in exchanges
                    if ex.exchange_id not in used and normalize(ex.request.url) == location
                ),
                None,
            )

        if len(hops) > 1:
            chains.append(
                RedirectChain(start_url=start.request.url, final_url=hops[-1].url, steps=hops)
            )
    return chains


def _last_timestamp(bundle: CaptureBundle) -> int:
    stamps = [ex.started_at for ex in bundle.exchanges] + [e.at for e in bundle.events]
    return max(stamps, default=0)
