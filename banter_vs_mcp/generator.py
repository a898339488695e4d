"""Build Unity visual scripting graphs from a compact node/connection spec.

Expected spec format::

    {
        "graphName": "GrabToggle",
        "nodes": [
            {"localId": "grab", "type": "OnGrab"},
            {"localId": "flag", "type": "Literal",
             "properties": {"valueType": "bool", "value": True}},
            {"localId": "store", "type": "SetVariable",
             "properties": {"name": "isHeld"}}
        ],
        "connections": [
            {"from": "grab", "fromPort": "trigger", "to": "store", "toPort": "assign", "kind": "control"},
            {"from": "flag", "fromPort": "output", "to": "store", "toPort": "input", "kind": "value"}
        ],
        "variables": [{"name": "isHeld", "type": "bool", "defaultValue": False}]
    }

Short node names are resolved through the registry; anything else is used
as an opaque fully-qualified type.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Tuple

from . import catalogue
from .asset import is_valid_graph_name, render_asset
from .guids import new_guid

logger = logging.getLogger(__name__)

GRAPH_VERSION = "A"
# Node fields owned by the generator; properties never override them.
_IDENTITY_KEYS = frozenset({"$id", "$type", "guid", "$version"})

_LAYOUT_COLUMNS = 4
_LAYOUT_STEP_X = 250
_LAYOUT_STEP_Y = 200


class GraphSpecError(ValueError):
    """Raised for a spec that cannot produce a well-formed graph."""


def _first(spec: Dict, *keys):
    for key in keys:
        if spec.get(key) is not None:
            return spec[key]
    return None


def _normalize_node_spec(node_spec) -> Tuple[str, str, Dict, object]:
    if not isinstance(node_spec, dict):
        raise GraphSpecError(f"Invalid node spec: {node_spec!r}")
    local_id = _first(node_spec, "localId", "local_id", "id")
    node_type = _first(node_spec, "type", "nodeType")
    if local_id is None or local_id == "" or not node_type:
        raise GraphSpecError(f"Invalid node spec (needs 'type' and 'localId'): {node_spec}")
    if not isinstance(node_type, str):
        raise GraphSpecError(f"Node '{local_id}' type must be a string: {node_type!r}")
    properties = node_spec.get("properties") or {}
    if not isinstance(properties, dict):
        raise GraphSpecError(f"Node '{local_id}' properties must be an object")
    return str(local_id), node_type, properties, node_spec.get("position")


def _normalize_connection_spec(conn_spec) -> Tuple[str, Optional[str], str, Optional[str], Optional[str]]:
    if not isinstance(conn_spec, dict):
        raise GraphSpecError(f"Invalid connection spec: {conn_spec!r}")
    from_id = _first(conn_spec, "fromLocalId", "from_local_id", "from")
    to_id = _first(conn_spec, "toLocalId", "to_local_id", "to")
    from_port = _first(conn_spec, "fromPort", "from_port")
    to_port = _first(conn_spec, "toPort", "to_port")
    kind = _first(conn_spec, "kind", "type")
    if from_id is None or to_id is None:
        raise GraphSpecError(f"Connection spec needs both endpoints: {conn_spec}")
    if not from_port or not to_port:
        raise GraphSpecError(f"Connection {from_id} -> {to_id} needs 'fromPort' and 'toPort'")
    if not isinstance(from_port, str) or not isinstance(to_port, str):
        raise GraphSpecError(f"Connection {from_id} -> {to_id} port names must be strings")
    return str(from_id), from_port, str(to_id), to_port, kind


def _layout_position(index: int) -> Dict:
    column = index % _LAYOUT_COLUMNS
    row = index // _LAYOUT_COLUMNS
    return {"x": column * _LAYOUT_STEP_X, "y": row * _LAYOUT_STEP_Y}


def _node_position(raw, index: int) -> Dict:
    if raw is None:
        return _layout_position(index)
    if isinstance(raw, dict) and "x" in raw and "y" in raw:
        return {"x": raw["x"], "y": raw["y"]}
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return {"x": raw[0], "y": raw[1]}
    raise GraphSpecError(f"Invalid position {raw!r}; use {{'x': .., 'y': ..}} or [x, y]")


def _placeholder_member(full_type: str) -> Dict:
    if full_type == catalogue.INVOKE_MEMBER_TYPE:
        name, parameter_types = "Method", []
    else:
        name, parameter_types = "property", None
    return {
        "name": name,
        "parameterTypes": parameter_types,
        "targetType": "System.Object",
        "targetTypeName": "System.Object",
        "$version": GRAPH_VERSION,
    }


def _variable_name_default(name) -> Dict:
    return {"$content": name or "variable", "$type": "System.String"}


def _literal_type(value_type, registry: catalogue.Registry) -> str:
    if not value_type:
        return "System.Boolean"
    if not isinstance(value_type, str):
        raise GraphSpecError(f"Literal valueType must be a string: {value_type!r}")
    return catalogue.type_handle(value_type, registry).split(",")[0]


def build_node(
    full_type: str,
    node_id: str,
    position: Dict,
    properties: Dict,
    registry: catalogue.Registry,
    seen_guids: set,
) -> Dict:
    """Create one serialized unit with every field its shape requires."""
    node = {
        "position": position,
        "guid": new_guid(seen_guids),
        "$version": GRAPH_VERSION,
        "$type": full_type,
        "$id": node_id,
    }
    props = dict(properties)
    shape = catalogue.node_shape(full_type, registry)

    if shape == catalogue.SHAPE_EVENT:
        node["coroutine"] = False
        node["defaultValues"] = {}
    elif shape == catalogue.SHAPE_MEMBER:
        if full_type == catalogue.INVOKE_MEMBER_TYPE:
            node["chainable"] = False
            node["parameterNames"] = []
        node["member"] = _placeholder_member(full_type)
        node["defaultValues"] = {"target": None}
    elif shape == catalogue.SHAPE_SET_VARIABLE:
        node["kind"] = props.pop("kind", None) or "Graph"
        node["defaultValues"] = {"name": _variable_name_default(props.pop("name", None))}
    elif shape == catalogue.SHAPE_GET_VARIABLE:
        node["specifyFallback"] = False
        node["kind"] = props.pop("kind", None) or "Graph"
        node["defaultValues"] = {
            "name": _variable_name_default(props.pop("name", None)),
            "object": None,
        }
    elif shape == catalogue.SHAPE_LITERAL:
        literal_type = _literal_type(props.pop("valueType", None), registry)
        value = props.pop("value", None)
        node["type"] = literal_type
        node["value"] = {"$content": False if value is None else value, "$type": literal_type}
        node["defaultValues"] = {}
    else:
        node["defaultValues"] = {}

    for key, value in props.items():
        if key in _IDENTITY_KEYS:
            continue
        if key == "defaultValues" and isinstance(value, dict):
            merged = dict(node["defaultValues"])
            merged.update(value)
            node["defaultValues"] = merged
        else:
            node[key] = value

    if shape == catalogue.SHAPE_MEMBER:
        node["defaultValues"].setdefault("target", None)
    return node


def _connection_kind(kind, from_port: str, source_type: str, registry: catalogue.Registry) -> str:
    if kind in ("control", "value"):
        return kind
    if kind is None:
        descriptor = catalogue.get_node_spec(source_type, registry)
        if descriptor:
            for port in descriptor.outputs:
                if port.name == from_port:
                    return port.kind
        raise GraphSpecError(
            f"Connection from port '{from_port}' needs 'kind' ('control' or 'value')"
        )
    raise GraphSpecError(f"Invalid connection kind {kind!r}; expected 'control' or 'value'")


def _checked_node_type(local_id: str, node_type: str, registry: catalogue.Registry) -> str:
    full_type = catalogue.resolve_node_type(node_type, registry)
    status, detail = catalogue.classify_node_type(full_type, registry)
    if status == catalogue.STATUS_UNSUPPORTED:
        raise GraphSpecError(f"Node '{local_id}' uses '{full_type}' which doesn't exist! {detail}")
    if status == catalogue.STATUS_WRONG_NAMESPACE:
        logger.info("Node '%s': using flat type %s instead of %s", local_id, detail, full_type)
        return detail
    return full_type


def build_variable(var_spec, registry: catalogue.Registry) -> Dict:
    if not isinstance(var_spec, dict) or not var_spec.get("name") or not isinstance(var_spec["name"], str):
        raise GraphSpecError(f"Variable spec needs a 'name': {var_spec!r}")
    type_name = var_spec.get("type")
    if not type_name or not isinstance(type_name, str):
        raise GraphSpecError(f"Variable '{var_spec['name']}' needs a 'type' string")

    handle = catalogue.type_handle(type_name, registry)
    value = None
    if "defaultValue" in var_spec:
        value = {"$content": var_spec["defaultValue"], "$type": handle.split(",")[0]}
    return {
        "name": var_spec["name"],
        "value": value,
        "typeHandle": {"Identification": handle, "$version": GRAPH_VERSION},
        "$version": GRAPH_VERSION,
    }


def _collection(content: List) -> Dict:
    return {"$content": content, "$version": GRAPH_VERSION}


def build_graph(spec: Dict, registry: Optional[catalogue.Registry] = None) -> Dict:
    """Turn a spec into the ``{"graph": {...}}`` object; raises GraphSpecError."""
    if not isinstance(spec, dict):
        raise GraphSpecError("Graph spec must be an object")
    registry = registry or catalogue.load_registry()

    node_specs = spec.get("nodes") or []
    connection_specs = spec.get("connections") or []
    variable_specs = spec.get("variables") or []
    for key, value in (("nodes", node_specs), ("connections", connection_specs), ("variables", variable_specs)):
        if not isinstance(value, list):
            raise GraphSpecError(f"'{key}' must be a list")

    seen_guids: set = set()
    units = []
    id_map: Dict[str, str] = {}
    type_map: Dict[str, str] = {}
    for index, node_spec in enumerate(node_specs):
        local_id, node_type, properties, raw_position = _normalize_node_spec(node_spec)
        if local_id in id_map:
            raise GraphSpecError(f"Duplicate node id: {local_id}")
        node_id = str(index + 1)
        full_type = _checked_node_type(local_id, node_type, registry)
        id_map[local_id] = node_id
        type_map[local_id] = full_type
        units.append(build_node(
            full_type, node_id, _node_position(raw_position, index), properties, registry, seen_guids,
        ))

    control_connections = []
    value_connections = []
    for conn_spec in connection_specs:
        from_id, from_port, to_id, to_port, kind = _normalize_connection_spec(conn_spec)
        if from_id not in id_map or to_id not in id_map:
            raise GraphSpecError(f"Connection references unknown node: {from_id} -> {to_id}")
        kind = _connection_kind(kind, from_port, type_map[from_id], registry)
        record = {
            "sourceUnit": {"$ref": id_map[from_id]},
            "sourceKey": from_port,
            "destinationUnit": {"$ref": id_map[to_id]},
            "destinationKey": to_port,
            "guid": new_guid(seen_guids),
            "$type": (
                catalogue.CONTROL_CONNECTION_TYPE if kind == "control"
                else catalogue.VALUE_CONNECTION_TYPE
            ),
        }
        (control_connections if kind == "control" else value_connections).append(record)

    variables = []
    variable_names = set()
    for var_spec in variable_specs:
        variable = build_variable(var_spec, registry)
        if variable["name"] in variable_names:
            raise GraphSpecError(f"Duplicate variable name: {variable['name']}")
        variable_names.add(variable["name"])
        variables.append(variable)

    return {
        "graph": {
            "variables": {
                "Kind": "Flow",
                "collection": _collection(variables),
                "$version": GRAPH_VERSION,
            },
            "controlInputDefinitions": [],
            "controlOutputDefinitions": [],
            "valueInputDefinitions": [],
            "valueOutputDefinitions": [],
            "units": _collection(units),
            "controlConnections": _collection(control_connections),
            "valueConnections": _collection(value_connections),
            "$version": GRAPH_VERSION,
        }
    }


def serialize_graph(graph: Dict) -> str:
    return json.dumps(graph, separators=(",", ":"), ensure_ascii=False)


def generate_vs_graph(spec: Dict, registry: Optional[catalogue.Registry] = None) -> Dict:
    """
    Generate a graph and its ``.asset`` envelope.

    Returns:
        Dict with success, graphJson, assetContent, nodeCount and
        connectionCount, or success False with an error message.
    """
    try:
        if not isinstance(spec, dict):
            raise GraphSpecError("Graph spec must be an object")
        graph_name = _first(spec, "graphName", "graph_name")
        if not isinstance(graph_name, str) or not graph_name.strip():
            raise GraphSpecError("Graph spec needs a non-empty 'graphName'")
        if not is_valid_graph_name(graph_name):
            raise GraphSpecError(
                f"Invalid graphName {graph_name!r}; use letters, digits, spaces, '_', '-', '.' or parentheses"
            )
        graph = build_graph(spec, registry)
    except GraphSpecError as exc:
        logger.warning("Graph generation failed: %s", exc)
        return {"success": False, "error": str(exc), "nodeCount": 0, "connectionCount": 0}

    data = graph["graph"]
    graph_json = serialize_graph(graph)
    return {
        "success": True,
        "graphJson": graph_json,
        "assetContent": render_asset(graph_name, graph_json),
        "nodeCount": len(data["units"]["$content"]),
        "connectionCount": (
            len(data["controlConnections"]["$content"]) + len(data["valueConnections"]["$content"])
        ),
    }


__all__ = [
    "GraphSpecError",
    "build_node",
    "build_variable",
    "build_graph",
    "serialize_graph",
    "generate_vs_graph",
]
