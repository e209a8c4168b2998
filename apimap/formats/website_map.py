"""Pydantic models for the website map (user actions correlated to HTTP traffic)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ExchangeReference(BaseModel):
    exchange_id: str
    url: str
    method: str
    status: int | None = None
    is_redirect: bool = False


class NavigationOutcome(BaseModel):
    from_url: str | None = None
    to_url: str
    timestamp: int
    is_redirect: bool = False
    redirect_chain: list[str] = Field(default_factory=list)


class RedirectHop(BaseModel):
    exchange_id: str
    url: str
    status: int
    location: str | None = None


class RedirectChain(BaseModel):
    """An HTTP redirect chain (3xx responses followed through Location)."""

    start_url: str
    final_url: str
    steps: list[RedirectHop] = Field(default_factory=list)


class CorrelatedAction(BaseModel):
    action_id: str
    timestamp: int
    action_type: str
    payload: dict[str, str] = Field(default_factory=dict)
    navigation_outcome: NavigationOutcome | None = None
    exchange_refs: list[ExchangeReference] = Field(default_factory=list)
    redirect_chains: list[RedirectChain] = Field(default_factory=list)


class WebsiteMap(BaseModel):
    session_id: str
    generated_at: int
    actions: list[CorrelatedAction] = Field(default_factory=list)
    total_exchanges: int = 0
    correlated_exchanges: int = 0
    uncorrelated_exchanges: list[str] = Field(default_factory=list)


# -- Unified timeline ---------------------------------------------------------


class TimelineEntry(BaseModel):
    event_id: str
    event_type: str  # "action" | "navigation" | "resource_request" | "resource_response"
    at: int
    url: str | None = None
    correlated_event_id: str | None = None
    parent_event_id: str | None = None
    depth: int = 0


class SessionTreeNode(BaseModel):
    node_id: str
    url: str
    title: str | None = None
    parent_node_id: str | None = None
    children: list[str] = Field(default_factory=list)
    depth: int = 0
    event_ids: list[str] = Field(default_factory=list)


class UnifiedTimeline(BaseModel):
    session_id: str
    entries: list[TimelineEntry] = Field(default_factory=list)
    tree_nodes: list[SessionTreeNode] = Field(default_factory=list)
    root_node_id: str | None = None
