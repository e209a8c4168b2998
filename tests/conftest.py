"""Shared test fixtures for apimap tests."""

from __future__ import annotations

import pytest

from apimap.commands.capture.types import CaptureBundle
from apimap.formats.capture import (
    AppInfo,
    CaptureManifest,
    Exchange,
    Header,
    HttpRequest,
    HttpResponse,
    NavigationEvent,
    RecorderEvent,
    ResourceRequestEvent,
    ResourceResponseEvent,
    UserActionEvent,
)
from apimap.formats.graph import MapEdge, MapGraph, MapNode
from apimap.helpers.naming import edge_id


def make_manifest(capture_id: str = "test-capture-001", initial_url: str | None = None) -> CaptureManifest:
    return CaptureManifest(
        capture_id=capture_id,
        created_at="2026-02-13T15:30:00Z",
        app=AppInfo(name="Test App", base_url="https://example.com"),
        initial_url=initial_url,
        duration_ms=5000,
    )


@pytest.fixture
def sample_manifest() -> CaptureManifest:
    return make_manifest()


def make_exchange(
    exchange_id: str,
    method: str,
    url: str,
    status: int | None = 200,
    started_at: int = 1000,
    duration_ms: int = 100,
    request_body: str | None = None,
    response_body: str | None = None,
    request_headers: list[Header] | None = None,
    response_headers: list[Header] | None = None,
) -> Exchange:
    """Helper to create an Exchange with minimal boilerplate.

    ``status=None`` builds an exchange without a response.
    """
    response = None
    if status is not None:
        response = HttpResponse(
            status=status,
            status_text="OK" if status == 200 else "Error",
            headers=response_headers
            if response_headers is not None
            else [Header(name="Content-Type", value="application/json")],
            body=response_body,
        )
    return Exchange(
        exchange_id=exchange_id,
        started_at=started_at,
        completed_at=started_at + duration_ms if response is not None else None,
        request=HttpRequest(
            method=method,
            url=url,
            headers=request_headers or [],
            body=request_body,
        ),
        response=response,
    )


def make_action(
    action_id: str, at: int, action: str = "click", payload: dict[str, str] | None = None
) -> UserActionEvent:
    return UserActionEvent(id=action_id, at=at, action=action, payload=payload or {})


def make_navigation(
    nav_id: str,
    at: int,
    url: str,
    from_url: str | None = None,
    title: str | None = None,
    is_redirect: bool = False,
) -> NavigationEvent:
    return NavigationEvent(
        id=nav_id, at=at, url=url, from_url=from_url, title=title, is_redirect=is_redirect
    )


def make_resource_request(
    req_id: str,
    at: int,
    url: str,
    initiator_url: str | None = None,
    resource_kind: str = "xhr",
    method: str = "GET",
) -> ResourceRequestEvent:
    return ResourceRequestEvent(
        id=req_id,
        at=at,
        url=url,
        method=method,
        initiator_url=initiator_url,
        resource_kind=resource_kind,  # type: ignore[arg-type]
    )


def make_resource_response(
    resp_id: str,
    at: int,
    url: str,
    status_code: int = 200,
    request_id: str | None = None,
    content_type: str | None = "application/json",
    redirect_location: str | None = None,
) -> ResourceResponseEvent:
    return ResourceResponseEvent(
        id=resp_id,
        at=at,
        url=url,
        request_id=request_id,
        status_code=status_code,
        content_type=content_type,
        redirect_location=redirect_location,
        response_time_ms=50,
    )


def make_bundle(
    exchanges: list[Exchange] | None = None,
    events: list[RecorderEvent] | None = None,
    capture_id: str = "test-capture-001",
    initial_url: str | None = None,
) -> CaptureBundle:
    return CaptureBundle(
        manifest=make_manifest(capture_id, initial_url),
        exchanges=exchanges or [],
        events=events or [],
    )


def make_graph(edges: list[tuple[str, str]], kind: str = "Link") -> MapGraph:
    """Graph whose node ids are the given names and URLs ``https://example.com/<name>``."""
    names: list[str] = []
    for a, b in edges:
        for name in (a, b):
            if name not in names:
                names.append(name)
    return MapGraph(
        nodes=[MapNode(id=n, url=f"https://example.com/{n}") for n in names],
        edges=[
            MapEdge(id=edge_id(a, b, kind, None), kind=kind, from_=a, to=b)  # type: ignore[arg-type]
            for a, b in edges
        ],
    )


@pytest.fixture
def sample_bundle() -> CaptureBundle:
    """A short login-then-browse session on example.com."""
    login_body = '{"username": "alice", "password": "secret"}'
    token_body = '{"access_token": "tok_abcdef123456", "user_id": 42}'
    auth = [Header(name="Authorization", value="Bearer tok_abcdef123456")]
    exchanges = [
        make_exchange(
            "ex_login", "POST", "https://api.example.com/api/auth/login",
            started_at=1100, request_body=login_body, response_body=token_body,
            request_headers=[Header(name="Content-Type", value="application/json")],
        ),
        make_exchange(
            "ex_user", "GET", "https://api.example.com/api/users/42",
            started_at=5200, response_body='{"id": 42, "name": "Alice"}', request_headers=auth,
        ),
        make_exchange(
            "ex_orders", "GET", "https://api.example.com/api/users/42/orders?page=1",
            started_at=5400, response_body='[{"id": 7, "total": 9.5}]', request_headers=auth,
        ),
        make_exchange(
            "ex_css", "GET", "https://cdn.example.com/static/app.css",
            started_at=5500, response_headers=[Header(name="Content-Type", value="text/css")],
        ),
    ]
    events: list[RecorderEvent] = [
        make_navigation("nav_home", 500, "https://example.com/", title="Home"),
        make_action("act_login", 1000, action="submit"),
        make_action("act_profile", 5000, action="click"),
        make_navigation("nav_profile", 5100, "https://example.com/profile", from_url="https://example.com/"),
    ]
    return make_bundle(exchanges, events, initial_url="https://example.com/")
