"""Tests for the MCP server wiring."""

import asyncio
import json

import pytest
from mcp.server.fastmcp import FastMCP

from banter_vs_mcp.server import create_server


@pytest.fixture
def server(registry, unity_project):
    return create_server(config=unity_project, registry=registry)


def _call(server, name, /, **arguments):
    """Call a tool and decode the JSON text of its result."""
    result = asyncio.run(server.call_tool(name, arguments))
    if isinstance(result, tuple):
        result = result[0]
    return json.loads(list(result)[0].text)


def test_create_server_registers_tools(server):
    assert isinstance(server, FastMCP)
    names = {tool.name for tool in asyncio.run(server.list_tools())}
    assert {
        "validate_vs_graph",
        "generate_vs_graph",
        "write_vs_graph",
        "write_webroot_js",
        "query_project_state",
        "check_import_status",
        "get_console_logs",
        "refresh_unity_assets",
        "list_vs_nodes",
        "describe_vs_node",
        "create_gameobject",
        "delete_gameobject",
        "modify_gameobject",
        "add_component",
        "remove_component",
        "set_component_property",
        "batch_create",
        "instantiate_prefab",
        "batch_instantiate_prefabs",
        "get_prefab_catalog",
        "scan_prefabs",
        "get_object_bounds",
    } <= names


def test_resources_registered(server):
    resources = asyncio.run(server.list_resources())
    uris = {str(resource.uri).rstrip("/") for resource in resources}
    assert {"banter://vs-nodes", "banter://vs-instructions"} <= uris
    templates = asyncio.run(server.list_resource_templates())
    assert "banter://vs-nodes/{name}" in {template.uriTemplate for template in templates}


def test_node_listing_resource_is_json(server):
    contents = asyncio.run(server.read_resource("banter://vs-nodes"))
    nodes = json.loads(list(contents)[0].content)
    assert any(node["fullType"] == "Banter.VisualScripting.OnGrab" for node in nodes)


def test_instructions_resource(server):
    contents = asyncio.run(server.read_resource("banter://vs-instructions"))
    text = list(contents)[0].content
    assert "coroutine" in text
    assert "Banter.VisualScripting.OnGrab" in text


def test_prompts(server):
    names = {prompt.name for prompt in asyncio.run(server.list_prompts())}
    assert {"create_vs_graph", "debug_vs_graph"} <= names

    result = asyncio.run(server.get_prompt("create_vs_graph", {"purpose": "a light switch"}))
    assert [message.role for message in result.messages] == ["user", "assistant"]
    assert "a light switch" in result.messages[1].content.text


def test_generate_tool_attaches_validation(server):
    result = _call(
        server,
        "generate_vs_graph",
        graph_name="Grab",
        nodes=[{"localId": "grab", "type": "OnGrab"}, {"localId": "log", "type": "Debug"}],
        connections=[{"from": "grab", "fromPort": "trigger", "to": "log", "toPort": "enter",
                      "kind": "control"}],
    )
    assert result["success"]
    assert result["validation"]["valid"] is True
    assert result["validation"]["nodeCount"] == 2


def test_generate_tool_failure_has_no_validation(server):
    result = _call(server, "generate_vs_graph", graph_name="Grab",
                   nodes=[{"localId": "a", "type": "Unity.VisualScripting.GetComponent"}])
    assert result["success"] is False
    assert "validation" not in result


def test_validate_tool(server):
    result = _call(server, "validate_vs_graph", graph_json="{")
    assert result["valid"] is False


def test_describe_known_node(server):
    result = _call(server, "describe_vs_node", name="OnGrab")
    assert result["success"]
    assert result["node"]["fullType"] == "Banter.VisualScripting.OnGrab"


def test_describe_nested_namespace_suggests_flat_type(server):
    result = _call(server, "describe_vs_node", name="Banter.VisualScripting.Events.OnGrab")
    assert result["success"] is False
    assert result["suggestion"] == "Banter.VisualScripting.OnGrab"


def test_describe_unsupported_node(server):
    result = _call(server, "describe_vs_node", name="Unity.VisualScripting.GetComponent")
    assert result["success"] is False
    assert "does not exist" in result["error"]
    assert "InvokeMember" in result["error"]


def test_list_nodes_by_keyword_and_category(server):
    result = _call(server, "list_vs_nodes", keyword="grab", category="events")
    assert result["count"] == len(result["nodes"]) > 0
    assert {node["category"] for node in result["nodes"]} == {"Events"}
    assert "OnGrab" in {node["name"] for node in result["nodes"]}


def test_write_tool_uses_server_config(server, unity_project):
    graph_json = json.dumps({"graph": {"units": {"$content": [], "$version": "A"}}})
    result = _call(server, "write_vs_graph", graph_json=graph_json, graph_name="Wired")
    assert result["success"], result.get("error")
    assert (unity_project.assets_path / "Scripts" / "VisualScripting" / "Wired.asset").exists()


def test_scene_tool_writes_command(server, unity_project):
    result = _call(server, "create_gameobject", name="Crate", primitive_type="Cube", position=[0, 1, 0])
    assert result["success"]
    command = json.loads(
        (unity_project.mcp_commands_path / f"{result['commandId']}.json").read_text(encoding="utf-8")
    )
    assert command["type"] == "create_gameobject"
    assert command["position"] == [0, 1, 0]
