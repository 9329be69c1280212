"""Unit tests for the tool catalog and argument models."""

import pytest

from diagramai_mcp.config import CAN_CREATE_DIAGRAMS, CAN_EDIT_DIAGRAMS, CAN_LIST_DIAGRAMS, CAN_READ_DIAGRAMS
from diagramai_mcp.errors import ToolValidationError
from diagramai_mcp.tools import TOOL_CATALOG, TOOLS

DIAGRAM_UUID = "6f1c2b9e-3a4d-4e5f-8a7b-1c2d3e4f5a6b"


class TestCatalog:
    def test_tool_names(self):
        assert [tool.name for tool in TOOLS] == [
            "create_diagram",
            "read_diagram",
            "list_diagrams",
            "add_node",
            "update_node",
            "delete_node",
            "add_edge",
            "delete_edge",
        ]

    def test_catalog_lookup(self):
        assert TOOL_CATALOG["add_edge"] is TOOLS[6]
        assert "delete_everything" not in TOOL_CATALOG

    @pytest.mark.parametrize(
        "name,capability",
        [
            ("create_diagram", CAN_CREATE_DIAGRAMS),
            ("read_diagram", CAN_READ_DIAGRAMS),
            ("list_diagrams", CAN_LIST_DIAGRAMS),
            ("update_node", CAN_EDIT_DIAGRAMS),
            ("delete_edge", CAN_EDIT_DIAGRAMS),
        ],
    )
    def test_capabilities(self, name, capability):
        assert TOOL_CATALOG[name].capability == capability

    def test_every_tool_has_object_schema(self):
        for tool in TOOLS:
            schema = tool.input_schema
            assert schema["type"] == "object", tool.name
            assert tool.description

    def test_create_schema_uses_wire_names(self):
        schema = TOOL_CATALOG["create_diagram"].input_schema

        assert schema["required"] == ["title"]
        assert "initialNodes" in schema["properties"]
        assert "initialEdges" in schema["properties"]

    def test_node_schema_requires_diagram_and_node(self):
        schema = TOOL_CATALOG["add_node"].input_schema

        assert set(schema["required"]) == {"diagram_uuid", "node_data"}


class TestValidation:
    def test_create_defaults(self):
        params = TOOL_CATALOG["create_diagram"].validate({"title": "Flow"})

        assert params == {"title": "Flow", "format": "reactflow"}

    def test_create_with_initial_content(self):
        params = TOOL_CATALOG["create_diagram"].validate(
            {"title": "Flow", "format": "mermaid", "initialNodes": [{"id": "n1"}]}
        )

        assert params["format"] == "mermaid"
        assert params["initialNodes"] == [{"id": "n1"}]

    def test_list_defaults(self):
        assert TOOL_CATALOG["list_diagrams"].validate({}) == {"limit": 10, "offset": 0}

    def test_read_normalizes_uuid(self):
        params = TOOL_CATALOG["read_diagram"].validate({"diagram_uuid": DIAGRAM_UUID.upper()})

        assert params == {"diagram_uuid": DIAGRAM_UUID, "include_metadata": False}

    def test_unknown_keys_are_ignored(self):
        params = TOOL_CATALOG["delete_node"].validate(
            {"diagram_uuid": DIAGRAM_UUID, "node_id": "n1", "force": True}
        )

        assert "force" not in params

    @pytest.mark.parametrize(
        "name,arguments,field",
        [
            ("create_diagram", {}, "title"),
            ("create_diagram", {"title": ""}, "title"),
            ("create_diagram", {"title": "x" * 256}, "title"),
            ("create_diagram", {"title": "Flow", "format": "svg"}, "format"),
            ("read_diagram", {"diagram_uuid": "not-a-uuid"}, "diagram_uuid"),
            ("list_diagrams", {"limit": 101}, "limit"),
            ("list_diagrams", {"offset": -1}, "offset"),
            (
                "add_node",
                {"diagram_uuid": DIAGRAM_UUID, "node_data": {"type": "process", "label": "A"}},
                "node_data.position",
            ),
            ("add_edge", {"diagram_uuid": DIAGRAM_UUID, "edge_data": {"source": "n1"}}, "edge_data.target"),
        ],
    )
    def test_invalid_arguments(self, name, arguments, field):
        with pytest.raises(ToolValidationError) as exc_info:
            TOOL_CATALOG[name].validate(arguments)

        message = str(exc_info.value)
        assert message.startswith(f"Invalid arguments for {name}:")
        assert field in message


class TestBuildMessage:
    def test_create_sends_whole_params(self):
        tool = TOOL_CATALOG["create_diagram"]
        message = tool.build_message(tool.validate({"title": "Flow"}))

        assert message.operation == "create_diagram"
        assert message.diagram_uuid is None
        assert message.data == {"title": "Flow", "format": "reactflow"}

    def test_add_node_sends_node_data(self):
        tool = TOOL_CATALOG["add_node"]
        params = tool.validate(
            {
                "diagram_uuid": DIAGRAM_UUID,
                "node_data": {"type": "process", "label": "Start", "position": {"x": 0, "y": 10}},
            }
        )
        message = tool.build_message(params)

        assert message.diagram_uuid == DIAGRAM_UUID
        assert message.data == {"type": "process", "label": "Start", "position": {"x": 0.0, "y": 10.0}}

    def test_update_node_sends_id_and_updates(self):
        tool = TOOL_CATALOG["update_node"]
        params = tool.validate(
            {"diagram_uuid": DIAGRAM_UUID, "node_id": "n1", "updates": {"label": "Renamed"}}
        )
        message = tool.build_message(params)

        assert message.diagram_uuid == DIAGRAM_UUID
        assert message.data == {"node_id": "n1", "updates": {"label": "Renamed"}}

    def test_delete_edge_sends_edge_id(self):
        tool = TOOL_CATALOG["delete_edge"]
        message = tool.build_message(tool.validate({"diagram_uuid": DIAGRAM_UUID, "edge_id": "e1"}))

        assert message.data == {"edge_id": "e1"}
