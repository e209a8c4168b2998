"""Pydantic models for the capture format (.json or .zip).

A capture holds the HTTP exchanges seen during a browsing session plus the
recorder events (user actions, navigations, resource loads) observed in the
page.  All timestamps are epoch milliseconds.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Header(BaseModel):
    name: str
    value: str


class AppInfo(BaseModel):
    name: str = ""
    base_url: str = ""


class CaptureManifest(BaseModel):
    format_version: str = "1.0.0"
    capture_id: str
    created_at: str
    app: AppInfo = Field(default_factory=AppInfo)
    initial_url: str | None = None
    duration_ms: int = 0


class HttpRequest(BaseModel):
    method: str
    url: str
    headers: list[Header] = Field(default_factory=list)
    body: str | None = None


class HttpResponse(BaseModel):
    status: int
    status_text: str = ""
    headers: list[Header] = Field(default_factory=list)
    body: str | None = None
    redirect_location: str | None = None

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400


class Exchange(BaseModel):
    """One HTTP request/response pair. ``response`` is None for failed or pending requests."""

    exchange_id: str
    started_at: int
    completed_at: int | None = None
    request: HttpRequest
    response: HttpResponse | None = None
    protocol: str = "HTTP/1.1"

    @property
    def duration_ms(self) -> int | None:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at


# -- Recorder events ----------------------------------------------------------


class UserActionEvent(BaseModel):
    type: Literal["action"] = "action"
    id: str
    at: int
    action: str  # "click" | "submit" | "input" | "navigate" | ...
    payload: dict[str, str] = Field(default_factory=dict)


class NavigationEvent(BaseModel):
    type: Literal["navigation"] = "navigation"
    id: str
    at: int
    url: str
    from_url: str | None = None
    title: str | None = None
    is_redirect: bool = False


ResourceKind = Literal["document", "xhr", "fetch", "script", "stylesheet", "image", "font", "other"]


class ResourceRequestEvent(BaseModel):
    type: Literal["resource_request"] = "resource_request"
    id: str
    at: int
    url: str
    method: str = "GET"
    initiator_url: str | None = None
    resource_kind: ResourceKind = "other"


class ResourceResponseEvent(BaseModel):
    type: Literal["resource_response"] = "resource_response"
    id: str
    at: int
    url: str
    request_id: str | None = None
    status_code: int
    content_type: str | None = None
    redirect_location: str | None = None
    response_time_ms: int = 0


RecorderEvent = Annotated[
    Union[UserActionEvent, NavigationEvent, ResourceRequestEvent, ResourceResponseEvent],
    Field(discriminator="type"),
]


class CaptureFile(BaseModel):
    """Single-file JSON form of a capture."""

    manifest: CaptureManifest
    exchanges: list[Exchange] = Field(default_factory=list)
    events: list[RecorderEvent] = Field(default_factory=list)
