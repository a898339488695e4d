"""Tests for generate_vs_graph() and its node/variable builders."""

import json

import pytest

from banter_vs_mcp.generator import GraphSpecError, build_graph, generate_vs_graph
from banter_vs_mcp.guids import fake_guid_pattern, is_guid
from banter_vs_mcp.validator import validate_vs_graph


GRAB_TOGGLE = {
    "graphName": "GrabToggle",
    "nodes": [
        {"localId": "grab", "type": "OnGrab"},
        {"localId": "flag", "type": "Literal", "properties": {"valueType": "bool", "value": True}},
        {"localId": "store", "type": "SetVariable", "properties": {"name": "isHeld"}},
        {"localId": "self", "type": "This"},
        {"localId": "rb", "type": "InvokeMember", "properties": {
            "member": {
                "name": "GetComponent",
                "parameterTypes": [],
                "targetType": "UnityEngine.GameObject",
                "targetTypeName": "UnityEngine.GameObject",
                "$version": "A",
            },
        }},
    ],
    "connections": [
        {"from": "grab", "fromPort": "trigger", "to": "store", "toPort": "assign", "kind": "control"},
        {"from": "flag", "fromPort": "output", "to": "store", "toPort": "input", "kind": "value"},
        {"from": "store", "fromPort": "assigned", "to": "rb", "toPort": "enter", "kind": "control"},
        {"from": "self", "fromPort": "self", "to": "rb", "toPort": "target", "kind": "value"},
    ],
    "variables": [
        {"name": "isHeld", "type": "bool", "defaultValue": False},
        {"name": "spawnPoint", "type": "Vector3"},
    ],
}


def _units(result):
    return json.loads(result["graphJson"])["graph"]["units"]["$content"]


def _graph(result):
    return json.loads(result["graphJson"])["graph"]


def test_generates_full_graph(registry):
    result = generate_vs_graph(GRAB_TOGGLE, registry)
    assert result["success"], result.get("error")
    assert result["nodeCount"] == 5
    assert result["connectionCount"] == 4

    graph = _graph(result)
    assert len(graph["controlConnections"]["$content"]) == 2
    assert len(graph["valueConnections"]["$content"]) == 2
    for key in ("controlInputDefinitions", "controlOutputDefinitions",
                "valueInputDefinitions", "valueOutputDefinitions"):
        assert graph[key] == []
    assert graph["variables"]["Kind"] == "Flow"


def test_round_trip_has_no_errors(registry):
    result = generate_vs_graph(GRAB_TOGGLE, registry)
    report = validate_vs_graph(result["graphJson"], registry)
    assert report["valid"], report["errors"]
    assert report["errors"] == []
    assert report["warnings"] == []
    assert report["nodeCount"] == result["nodeCount"]
    assert report["connectionCount"] == result["connectionCount"]


def test_sequential_ids_ignore_caller_ids(registry):
    result = generate_vs_graph(GRAB_TOGGLE, registry)
    assert [unit["$id"] for unit in _units(result)] == ["1", "2", "3", "4", "5"]
    conn = _graph(result)["controlConnections"]["$content"][0]
    assert conn["sourceUnit"] == {"$ref": "1"}
    assert conn["destinationUnit"] == {"$ref": "3"}
    assert conn["$type"] == "Unity.VisualScripting.ControlConnection"


def test_guids_are_unique_and_real(registry):
    spec = {
        "graphName": "Many",
        "nodes": [{"localId": str(i), "type": "Add"} for i in range(30)],
        "connections": [
            {"from": str(i), "fromPort": "sum", "to": str(i + 1), "toPort": "a", "kind": "value"}
            for i in range(29)
        ],
    }
    result = generate_vs_graph(spec, registry)
    graph = _graph(result)
    guids = [unit["guid"] for unit in graph["units"]["$content"]]
    guids += [conn["guid"] for conn in graph["valueConnections"]["$content"]]
    assert len(guids) == 59
    assert len(set(guids)) == 59
    for guid in guids:
        assert is_guid(guid)
        assert fake_guid_pattern(guid) is None


def test_scenario_single_event_node(registry):
    result = generate_vs_graph({"graphName": "Grab", "nodes": [{"type": "OnGrab", "localId": "a"}]}, registry)
    node = _units(result)[0]
    assert node["$type"] == "Banter.VisualScripting.OnGrab"
    assert node["coroutine"] is False
    assert node["defaultValues"] == {}
    assert is_guid(node["guid"])
    assert validate_vs_graph(result["graphJson"], registry)["errors"] == []


def test_scenario_set_variable_default_name(registry):
    result = generate_vs_graph(
        {"graphName": "Set", "nodes": [{"type": "SetVariable", "localId": "s"}]}, registry,
    )
    node = _units(result)[0]
    assert node["kind"] == "Graph"
    assert node["defaultValues"]["name"] == {"$content": "variable", "$type": "System.String"}
    report = validate_vs_graph(result["graphJson"], registry)
    assert report["valid"]


def test_get_variable_shape(registry):
    result = generate_vs_graph({"graphName": "Get", "nodes": [
        {"type": "GetVariable", "localId": "g", "properties": {"name": "score", "kind": "Object"}},
    ]}, registry)
    node = _units(result)[0]
    assert node["specifyFallback"] is False
    assert node["kind"] == "Object"
    assert node["defaultValues"] == {
        "name": {"$content": "score", "$type": "System.String"},
        "object": None,
    }
    assert "name" not in node


def test_literal_shape(registry):
    result = generate_vs_graph({"graphName": "Lit", "nodes": [
        {"type": "Literal", "localId": "f", "properties": {"valueType": "float", "value": 2.5}},
        {"type": "Literal", "localId": "b"},
    ]}, registry)
    number, flag = _units(result)
    assert number["type"] == "System.Single"
    assert number["value"] == {"$content": 2.5, "$type": "System.Single"}
    assert flag["type"] == "System.Boolean"
    assert flag["value"] == {"$content": False, "$type": "System.Boolean"}


def test_member_placeholders(registry):
    result = generate_vs_graph({"graphName": "Members", "nodes": [
        {"type": "InvokeMember", "localId": "call"},
        {"type": "GetMember", "localId": "read"},
    ]}, registry)
    invoke, get = _units(result)
    assert invoke["chainable"] is False
    assert invoke["parameterNames"] == []
    assert invoke["member"]["name"] == "Method"
    assert invoke["member"]["parameterTypes"] == []
    assert invoke["defaultValues"] == {"target": None}
    assert get["member"]["name"] == "property"
    assert get["member"]["parameterTypes"] is None
    assert "chainable" not in get


def test_properties_override_defaults_but_keep_target(registry):
    result = generate_vs_graph({"graphName": "Override", "nodes": [
        {"type": "InvokeMember", "localId": "call", "properties": {
            "chainable": True,
            "defaultValues": {"%value": {"$content": 3, "$type": "System.Int32"}},
            "$id": "99",
            "guid": "00000000-0000-0000-0000-000000000000",
        }},
    ]}, registry)
    node = _units(result)[0]
    assert node["chainable"] is True
    assert node["defaultValues"]["target"] is None
    assert node["defaultValues"]["%value"]["$content"] == 3
    assert node["$id"] == "1"
    assert node["guid"] != "00000000-0000-0000-0000-000000000000"


def test_generic_node_merges_properties(registry):
    result = generate_vs_graph({"graphName": "Generic", "nodes": [
        {"type": "Sequence", "localId": "seq", "properties": {"outputCount": 3}},
    ]}, registry)
    node = _units(result)[0]
    assert node["outputCount"] == 3
    assert node["defaultValues"] == {}


def test_unknown_type_passes_through(registry):
    result = generate_vs_graph({"graphName": "Ext", "nodes": [
        {"type": "Vendor.Nodes.Blink", "localId": "x"},
    ]}, registry)
    assert result["success"]
    assert _units(result)[0]["$type"] == "Vendor.Nodes.Blink"


def test_positions(registry):
    result = generate_vs_graph({"graphName": "Layout", "nodes": [
        {"type": "Start", "localId": "a", "position": {"x": -300, "y": 40}},
        {"type": "Update", "localId": "b", "position": [10, 20]},
        {"type": "If", "localId": "c"},
    ]}, registry)
    a, b, c = _units(result)
    assert a["position"] == {"x": -300, "y": 40}
    assert b["position"] == {"x": 10, "y": 20}
    assert c["position"] == {"x": 500, "y": 0}


def test_variables(registry):
    graph = _graph(generate_vs_graph(GRAB_TOGGLE, registry))
    held, spawn = graph["variables"]["collection"]["$content"]
    assert held == {
        "name": "isHeld",
        "value": {"$content": False, "$type": "System.Boolean"},
        "typeHandle": {"Identification": "System.Boolean, mscorlib", "$version": "A"},
        "$version": "A",
    }
    assert spawn["value"] is None
    assert spawn["typeHandle"]["Identification"] == "UnityEngine.Vector3, UnityEngine.CoreModule"


def test_unknown_variable_type_passes_through(registry):
    graph = build_graph({"variables": [{"name": "x", "type": "Vendor.Type, Vendor"}]}, registry)
    variable = graph["graph"]["variables"]["collection"]["$content"][0]
    assert variable["typeHandle"]["Identification"] == "Vendor.Type, Vendor"


def test_connection_kind_inferred_from_registry(registry):
    result = generate_vs_graph({
        "graphName": "Infer",
        "nodes": [{"localId": "a", "type": "OnClick"}, {"localId": "b", "type": "SetCanJump"}],
        "connections": [{"from": "a", "fromPort": "trigger", "to": "b", "toPort": "enter"}],
    }, registry)
    assert result["success"]
    assert len(_graph(result)["controlConnections"]["$content"]) == 1


def test_long_key_aliases(registry):
    result = generate_vs_graph({
        "graph_name": "Aliases",
        "nodes": [{"id": "a", "type": "Start"}, {"local_id": "b", "type": "Debug"}],
        "connections": [{"fromLocalId": "a", "fromPort": "trigger", "toLocalId": "b",
                         "toPort": "enter", "type": "control"}],
    }, registry)
    assert result["success"], result.get("error")


def test_asset_content_wraps_json(registry):
    spec = dict(GRAB_TOGGLE)
    spec["variables"] = [{"name": "label", "type": "string", "defaultValue": "it's held"}]
    result = generate_vs_graph(spec, registry)
    assert "m_Name: GrabToggle" in result["assetContent"]
    assert "it''s held" in result["assetContent"]
    assert "it's held" in result["graphJson"]


@pytest.mark.parametrize("spec, message", [
    ({"nodes": []}, "graphName"),
    ({"graphName": "  "}, "graphName"),
    ({"graphName": "G", "nodes": [{"localId": "a"}]}, "Invalid node spec"),
    ({"graphName": "G", "nodes": [{"type": "Start"}]}, "Invalid node spec"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Start"},
                                  {"localId": "a", "type": "Update"}]}, "Duplicate node id"),
    ({"graphName": "G", "nodes": "Start"}, "'nodes' must be a list"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Start", "position": "left"}]}, "Invalid position"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Start"}],
      "connections": [{"from": "a", "fromPort": "trigger", "to": "a", "toPort": "enter",
                       "kind": "signal"}]}, "Invalid connection kind"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Vendor.X"}],
      "connections": [{"from": "a", "fromPort": "out", "to": "a", "toPort": "in"}]}, "needs 'kind'"),
    ({"graphName": "G", "variables": [{"type": "bool"}]}, "needs a 'name'"),
    ({"graphName": "G", "variables": [{"name": "x"}]}, "needs a 'type'"),
    ({"graphName": "G", "variables": [{"name": "x", "type": "int"},
                                      {"name": "x", "type": "int"}]}, "Duplicate variable"),
    ("not a spec", "must be an object"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": ["OnGrab"]}]}, "type must be a string"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": {"name": "OnGrab"}}]}, "type must be a string"),
    ({"graphName": "G", "variables": [{"name": "x", "type": ["bool"]}]}, "needs a 'type'"),
    ({"graphName": "G", "variables": [{"name": ["x"], "type": "bool"}]}, "needs a 'name'"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Literal",
                                  "properties": {"valueType": ["bool"]}}]}, "valueType must be a string"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Start"}],
      "connections": [{"from": "a", "fromPort": ["trigger"], "to": "a", "toPort": "enter",
                       "kind": "control"}]}, "port names must be strings"),
    ({"graphName": "G", "nodes": [{"localId": "a", "type": "Unity.VisualScripting.GetComponent"}]}, "doesn't exist"),
    ({"graphName": "Bad: name"}, "Invalid graphName"),
    ({"graphName": "Two\nLines"}, "Invalid graphName"),
    ({"graphName": "Graph\n"}, "Invalid graphName"),
    ({"graphName": "../Escape"}, "Invalid graphName"),
])
def test_malformed_specs_fail_without_raising(registry, spec, message):
    result = generate_vs_graph(spec, registry)
    assert result["success"] is False
    assert message in result["error"]
    assert result["nodeCount"] == 0
    assert result["connectionCount"] == 0
    assert "graphJson" not in result


@pytest.mark.parametrize("missing", ["from", "to"])
def test_unresolved_connection_fails(registry, missing):
    conn = {"from": "a", "fromPort": "trigger", "to": "b", "toPort": "enter", "kind": "control"}
    conn[missing] = "ghost"
    result = generate_vs_graph({
        "graphName": "Dangling",
        "nodes": [{"localId": "a", "type": "Start"}, {"localId": "b", "type": "Debug"}],
        "connections": [conn],
    }, registry)
    assert result["success"] is False
    assert "Connection references unknown node" in result["error"]


def test_build_graph_raises_spec_error(registry):
    with pytest.raises(GraphSpecError):
        build_graph({"nodes": [{"type": "Start"}]}, registry)
    assert issubclass(GraphSpecError, ValueError)


def test_unsupported_type_is_rejected_with_guidance(registry):
    result = generate_vs_graph({"graphName": "NoGetComponent", "nodes": [
        {"localId": "get", "type": "Unity.VisualScripting.GetComponent"},
    ]}, registry)
    assert result["success"] is False
    assert "Unity.VisualScripting.InvokeMember" in result["error"]


def test_nested_banter_namespace_is_flattened(registry):
    result = generate_vs_graph({"graphName": "Nested", "nodes": [
        {"localId": "grab", "type": "Banter.VisualScripting.Events.OnGrab"},
    ]}, registry)
    assert result["success"], result.get("error")
    node = _units(result)[0]
    assert node["$type"] == "Banter.VisualScripting.OnGrab"
    assert node["coroutine"] is False

    report = validate_vs_graph(result["graphJson"], registry)
    assert report["errors"] == []
    assert report["warnings"] == []


def test_graph_names_with_spaces_and_dots(registry):
    for name in ("Door Opener", "door_opener.v2", "Lamp (1)"):
        assert generate_vs_graph({"graphName": name}, registry)["success"], name
