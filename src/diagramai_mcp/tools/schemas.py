"""Argument models for the diagram tools.

Each tool validates its raw arguments with one of these models. The same
models produce the JSON Schema advertised to MCP clients. Unknown keys are
ignored.
"""

from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

DiagramFormat = Literal["reactflow", "mermaid"]


class Position(BaseModel):
    x: float
    y: float


class CreateDiagramArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=255, description="Title of the diagram")
    description: str | None = Field(default=None, description="Optional description")
    format: DiagramFormat = Field(default="reactflow", description="Diagram format")
    template: str | None = Field(default=None, description="Optional template name")
    initial_nodes: list[Any] | None = Field(
        default=None, alias="initialNodes", description="Initial nodes for the diagram"
    )
    initial_edges: list[Any] | None = Field(
        default=None, alias="initialEdges", description="Initial edges for the diagram"
    )


class ReadDiagramArgs(BaseModel):
    diagram_uuid: UUID = Field(description="UUID of the diagram to read")
    include_metadata: bool = Field(default=False, description="Include diagram metadata")


class DiagramFilter(BaseModel):
    format: DiagramFormat | None = None
    agent_accessible: bool | None = None


class ListDiagramsArgs(BaseModel):
    limit: int = Field(default=10, ge=1, le=100, description="Number of diagrams to return")
    offset: int = Field(default=0, ge=0, description="Offset for pagination")
    filter: DiagramFilter | None = None


class NodeData(BaseModel):
    type: str = Field(description="Type of node (e.g., process, decision, start, end)")
    label: str = Field(description="Label text for the node")
    position: Position
    style: dict[str, Any] | None = Field(default=None, description="Optional styling")
    data: dict[str, Any] | None = Field(default=None, description="Additional node data")


class AddNodeArgs(BaseModel):
    diagram_uuid: UUID = Field(description="UUID of the diagram")
    node_data: NodeData


class NodeUpdates(BaseModel):
    label: str | None = None
    position: Position | None = None
    style: dict[str, Any] | None = None
    data: dict[str, Any] | None = None


class UpdateNodeArgs(BaseModel):
    diagram_uuid: UUID
    node_id: str = Field(description="ID of the node to update")
    updates: NodeUpdates


class DeleteNodeArgs(BaseModel):
    diagram_uuid: UUID
    node_id: str = Field(description="ID of the node to delete")


class EdgeData(BaseModel):
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")
    label: str | None = Field(default=None, description="Optional edge label")
    type: str | None = Field(default=None, description="Edge type (e.g., smoothstep, straight)")
    style: dict[str, Any] | None = Field(default=None, description="Optional styling")


class AddEdgeArgs(BaseModel):
    diagram_uuid: UUID
    edge_data: EdgeData


class DeleteEdgeArgs(BaseModel):
    diagram_uuid: UUID
    edge_id: str = Field(description="ID of the edge to delete")
