"""Pydantic models for the navigation/resource graph."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

NodeKind = Literal["Page", "ApiEndpoint", "Asset", "Document", "Form", "Error"]
EdgeKind = Literal["Link", "Redirect", "Fetch", "Xhr", "AssetLoad", "FormSubmit"]


class MapNode(BaseModel):
    id: str
    kind: NodeKind = "Page"
    url: str
    title: str | None = None
    tags: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)
    first_seen_at: int | None = None
    last_seen_at: int | None = None


class MapEdge(BaseModel):
    id: str
    kind: EdgeKind = "Link"
    from_: str = Field(alias="from")
    to: str
    label: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    first_seen_at: int | None = None
    last_seen_at: int | None = None

    model_config = {"populate_by_name": True}


class MapGraph(BaseModel):
    nodes: list[MapNode] = Field(default_factory=list)
    edges: list[MapEdge] = Field(default_factory=list)

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def get_node(self, node_id: str) -> MapNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None
