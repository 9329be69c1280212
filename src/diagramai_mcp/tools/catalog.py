"""The fixed catalog of diagram tools.

Single source of truth for each tool's name, description, argument model,
required capability and the shape of the operation message it sends.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from ..config import CAN_CREATE_DIAGRAMS, CAN_EDIT_DIAGRAMS, CAN_LIST_DIAGRAMS, CAN_READ_DIAGRAMS
from ..errors import ToolValidationError
from ..protocol.messages import OutboundMessage
from . import schemas

# Maps validated params to (diagram_uuid, data) for the operation message
PayloadFn = Callable[[dict[str, Any]], tuple[str | None, Any]]


def _whole_params(params: dict[str, Any]) -> tuple[str | None, Any]:
    return None, params


def _diagram_field(key: str) -> PayloadFn:
    return lambda params: (params["diagram_uuid"], params[key])


def _diagram_fields(*keys: str) -> PayloadFn:
    return lambda params: (params["diagram_uuid"], {k: params[k] for k in keys})


@dataclass(frozen=True)
class ToolDefinition:
    """A callable tool exposed by the bridge.

    Attributes:
        name: Tool name, also the remote operation name
        description: Human-readable description for MCP clients
        args_model: Pydantic model validating the arguments
        capability: Permission the caller must hold
        payload: Builds (diagram_uuid, data) from validated params
    """

    name: str
    description: str
    args_model: type[BaseModel]
    capability: str
    payload: PayloadFn = _whole_params

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool arguments."""
        return self.args_model.model_json_schema()

    def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate raw arguments and return JSON-ready params with defaults applied.

        Raises:
            ToolValidationError: If the arguments do not match the schema
        """
        try:
            model = self.args_model.model_validate(arguments)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise ToolValidationError(f"Invalid arguments for {self.name}: {details}") from e
        return model.model_dump(mode="json", by_alias=True, exclude_none=True)

    def build_message(self, params: dict[str, Any]) -> OutboundMessage:
        """Build the operation message for validated params."""
        diagram_uuid, data = self.payload(params)
        return OutboundMessage.operation_message(self.name, data=data, diagram_uuid=diagram_uuid)


TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        name="create_diagram",
        description="Create a new diagram with specified title, format, and optional initial content",
        args_model=schemas.CreateDiagramArgs,
        capability=CAN_CREATE_DIAGRAMS,
    ),
    ToolDefinition(
        name="read_diagram",
        description="Read the complete content of a diagram by UUID",
        args_model=schemas.ReadDiagramArgs,
        capability=CAN_READ_DIAGRAMS,
    ),
    ToolDefinition(
        name="list_diagrams",
        description="List diagrams with optional filtering and pagination",
        args_model=schemas.ListDiagramsArgs,
        capability=CAN_LIST_DIAGRAMS,
    ),
    ToolDefinition(
        name="add_node",
        description="Add a new node to an existing diagram",
        args_model=schemas.AddNodeArgs,
        capability=CAN_EDIT_DIAGRAMS,
        payload=_diagram_field("node_data"),
    ),
    ToolDefinition(
        name="update_node",
        description="Update properties of an existing node",
        args_model=schemas.UpdateNodeArgs,
        capability=CAN_EDIT_DIAGRAMS,
        payload=_diagram_fields("node_id", "updates"),
    ),
    ToolDefinition(
        name="delete_node",
        description="Delete a node from a diagram",
        args_model=schemas.DeleteNodeArgs,
        capability=CAN_EDIT_DIAGRAMS,
        payload=_diagram_fields("node_id"),
    ),
    ToolDefinition(
        name="add_edge",
        description="Add a connection between two nodes",
        args_model=schemas.AddEdgeArgs,
        capability=CAN_EDIT_DIAGRAMS,
        payload=_diagram_field("edge_data"),
    ),
    ToolDefinition(
        name="delete_edge",
        description="Delete an edge from a diagram",
        args_model=schemas.DeleteEdgeArgs,
        capability=CAN_EDIT_DIAGRAMS,
        payload=_diagram_fields("edge_id"),
    ),
]

TOOL_CATALOG: dict[str, ToolDefinition] = {tool.name: tool for tool in TOOLS}

