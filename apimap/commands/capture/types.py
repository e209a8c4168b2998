"""In-memory representation of a loaded capture."""

from __future__ import annotations

from dataclasses import dataclass, field

from apimap.formats.capture import (
    CaptureManifest,
    Exchange,
    NavigationEvent,
    RecorderEvent,
    ResourceRequestEvent,
    ResourceResponseEvent,
    UserActionEvent,
)


@dataclass
class CaptureBundle:
    """A capture session: manifest, HTTP exchanges and recorder events."""

    manifest: CaptureManifest
    exchanges: list[Exchange] = field(default_factory=lambda: [])
    events: list[RecorderEvent] = field(default_factory=lambda: [])

    @property
    def actions(self) -> list[UserActionEvent]:
        return [e for e in self.events if isinstance(e, UserActionEvent)]

    @property
    def navigations(self) -> list[NavigationEvent]:
        return [e for e in self.events if isinstance(e, NavigationEvent)]

    @property
    def resource_requests(self) -> list[ResourceRequestEvent]:
        return [e for e in self.events if isinstance(e, ResourceRequestEvent)]

    @property
    def resource_responses(self) -> list[ResourceResponseEvent]:
        return [e for e in self.events if isinstance(e, ResourceResponseEvent)]

    def get_exchange(self, exchange_id: str) -> Exchange | None:
        for ex in self.exchanges:
            if ex.exchange_id == exchange_id:
                return ex
        return None
