"""
Validation of serialized Unity visual scripting graphs.

Catches the structural mistakes that make Unity refuse a ScriptGraphAsset
(errors) or load it and misbehave (warnings). Every rule runs on every
call so one report lists all detectable defects.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional

from . import catalogue
from .guids import fake_guid_pattern, is_guid

logger = logging.getLogger(__name__)

DEFINITION_KEYS = (
    "controlInputDefinitions",
    "controlOutputDefinitions",
    "valueInputDefinitions",
    "valueOutputDefinitions",
)


class _Report:
    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.node_count = 0
        self.connection_count = 0

    def to_dict(self) -> Dict:
        return {
            "valid": not self.errors,
            "errors": self.errors,
            "warnings": self.warnings,
            "nodeCount": self.node_count,
            "connectionCount": self.connection_count,
        }


def _content(container) -> Optional[list]:
    if isinstance(container, dict) and isinstance(container.get("$content"), list):
        return container["$content"]
    return None


def _check_guid(guid, label: str, report: _Report, seen_guids: Dict[str, str]) -> None:
    if not guid:
        report.errors.append(f"{label} missing guid")
    elif not is_guid(guid):
        report.errors.append(f"{label} has invalid GUID format: {guid}")
    elif fake_guid_pattern(guid):
        report.errors.append(
            f"{label} has fake/pattern GUID: {guid} (matches {fake_guid_pattern(guid)}). "
            "Generate real random GUIDs!"
        )
    else:
        key = guid.lower()
        if key in seen_guids:
            report.errors.append(f"{label} reuses GUID {guid} already used by {seen_guids[key]}")
        else:
            seen_guids[key] = label


def _check_node_type(node: Dict, node_type, node_id, registry: catalogue.Registry, report: _Report) -> None:
    label = f"Node {node_id}"
    if not node_type:
        report.errors.append(f"{label} missing $type")
        return
    if not isinstance(node_type, str):
        report.errors.append(f"{label} has invalid $type: {json.dumps(node_type)}")
        return

    status, detail = catalogue.classify_node_type(node_type, registry)
    if status == catalogue.STATUS_WRONG_NAMESPACE:
        segment = next(seg for seg in registry.deprecated_segments if seg in node_type)
        report.errors.append(
            f"{label} has wrong Banter namespace: {node_type} (nested segment '{segment}'). "
            f"Use the flat namespace '{detail}', not a nested path like "
            "'Banter.VisualScripting.Events.OnGrab'"
        )
    elif status == catalogue.STATUS_UNSUPPORTED:
        report.errors.append(f"{label} uses '{node_type}' which doesn't exist! {detail}")
    elif status == catalogue.STATUS_UNKNOWN and node_type.startswith(catalogue.BANTER_PREFIX):
        report.warnings.append(f"{label} has unknown Banter type: {node_type}")

    shape = catalogue.node_shape(node_type, registry)
    defaults = node.get("defaultValues")

    if shape == catalogue.SHAPE_EVENT and node.get("coroutine") is not False:
        report.errors.append(f"Event node {node_id} ({node_type}) missing 'coroutine: false'")

    elif shape == catalogue.SHAPE_MEMBER:
        if not isinstance(defaults, dict):
            report.warnings.append(f"{label} ({node_type}) missing defaultValues")
        elif "target" not in defaults:
            report.warnings.append(f"{label} ({node_type}) defaultValues missing 'target: null'")

    elif shape == catalogue.SHAPE_SET_VARIABLE:
        if not isinstance(defaults, dict) or not defaults.get("name"):
            report.errors.append(f"SetVariable node {node_id} missing variable name in defaultValues.name")

    elif shape == catalogue.SHAPE_LITERAL:
        if not node.get("type"):
            report.warnings.append(f"Literal node {node_id} missing 'type' property")
        if "value" not in node:
            report.warnings.append(f"Literal node {node_id} missing 'value' property")


def _validate_node(
    node,
    registry: catalogue.Registry,
    report: _Report,
    node_types: Dict[str, Optional[str]],
    seen_guids: Dict[str, str],
) -> None:
    if not isinstance(node, dict):
        report.errors.append(f"Node entry is not an object: {json.dumps(node)}")
        return

    node_id = node.get("$id")
    if not isinstance(node_id, str):
        report.errors.append(f"Node has invalid $id: {json.dumps(node_id)} (must be string)")
    elif node_id in node_types:
        report.errors.append(f"Duplicate node $id: {node_id}")
    else:
        node_types[node_id] = node.get("$type") if isinstance(node.get("$type"), str) else None

    label = f"Node {node_id}"
    _check_guid(node.get("guid"), label, report, seen_guids)
    _check_node_type(node, node.get("$type"), node_id, registry, report)


def _unit_ref(unit):
    return unit.get("$ref") if isinstance(unit, dict) else None


def _validate_connection(
    conn,
    kind: str,
    registry: catalogue.Registry,
    report: _Report,
    node_types: Dict[str, Optional[str]],
    seen_guids: Dict[str, str],
) -> None:
    if not isinstance(conn, dict):
        report.errors.append(f"Connection entry is not an object: {json.dumps(conn)}")
        return

    source_ref = _unit_ref(conn.get("sourceUnit"))
    dest_ref = _unit_ref(conn.get("destinationUnit"))
    source_key = conn.get("sourceKey")
    label = f"Connection {source_ref}.{source_key} -> {dest_ref}.{conn.get('destinationKey')}"

    _check_guid(conn.get("guid"), label, report, seen_guids)

    expected_type = (
        catalogue.CONTROL_CONNECTION_TYPE if kind == "control" else catalogue.VALUE_CONNECTION_TYPE
    )
    if conn.get("$type") != expected_type:
        report.warnings.append(
            f"{label} has wrong $type: {conn.get('$type')}, expected {expected_type}"
        )

    for field, ref in (("sourceUnit", source_ref), ("destinationUnit", dest_ref)):
        if not ref:
            report.errors.append(f"{label} missing {field}.$ref")
        elif str(ref) not in node_types:
            report.errors.append(f"{label} {field}.$ref '{ref}' does not match any node $id")
    if not source_key:
        report.errors.append(f"{label} missing sourceKey")
    if not conn.get("destinationKey"):
        report.errors.append(f"{label} missing destinationKey")

    if not isinstance(source_key, str):
        return
    correction = catalogue.port_corrections(registry).get(source_key)
    if correction:
        node_name = correction[0].rsplit(".", 1)[-1]
        report.warnings.append(
            f"Port name '{source_key}' is wrong - {node_name} outputs '{correction[1]}', not '{source_key}'"
        )
    source_type = node_types.get(str(source_ref)) if source_ref else None
    if source_type:
        corrected = catalogue.node_port_corrections(source_type, registry).get(source_key)
        if corrected:
            report.warnings.append(
                f"Port name '{source_key}' is wrong - {source_type.rsplit('.', 1)[-1]} "
                f"outputs '{corrected}', not '{source_key}'"
            )


def _validate_variables(variables, report: _Report) -> None:
    collection = variables.get("collection") if isinstance(variables, dict) else None
    for variable in _content(collection) or []:
        if not isinstance(variable, dict):
            report.warnings.append(f"Variable entry is not an object: {json.dumps(variable)}")
            continue
        if not variable.get("name"):
            report.warnings.append("Variable missing name")
        if not variable.get("typeHandle"):
            report.warnings.append(f"Variable '{variable.get('name')}' missing typeHandle")


def validate_vs_graph(graph_json: str, registry: Optional[catalogue.Registry] = None) -> Dict:
    """
    Validate serialized graph JSON.

    Args:
        graph_json: Text of a ``{"graph": {...}}`` document.

    Returns:
        Dict with valid, errors, warnings, nodeCount, connectionCount.
        ``valid`` is True iff there are no errors.
    """
    registry = registry or catalogue.load_registry()
    report = _Report()

    try:
        document = json.loads(graph_json)
    except (TypeError, ValueError, RecursionError) as exc:
        report.errors.append(f"Invalid JSON: {exc}")
        return report.to_dict()

    graph = document.get("graph") if isinstance(document, dict) else None
    if not isinstance(graph, dict):
        report.errors.append("Missing 'graph' root object")
        return report.to_dict()

    node_types: Dict[str, Optional[str]] = {}
    seen_guids: Dict[str, str] = {}

    nodes = _content(graph.get("units"))
    if nodes is None:
        report.warnings.append("No nodes found in graph (units.$content)")
    else:
        report.node_count = len(nodes)
        for node in nodes:
            _validate_node(node, registry, report, node_types, seen_guids)

    for key, kind in (("controlConnections", "control"), ("valueConnections", "value")):
        connections = _content(graph.get(key))
        if connections is None:
            continue
        report.connection_count += len(connections)
        for conn in connections:
            _validate_connection(conn, kind, registry, report, node_types, seen_guids)

    if graph.get("variables"):
        _validate_variables(graph["variables"], report)

    if any(graph.get(key) for key in DEFINITION_KEYS):
        report.warnings.append(
            "Graph has input/output definitions - is this a Subgraph? "
            "Script Graphs should have empty definition arrays."
        )

    logger.debug(
        "Validated graph: %d nodes, %d connections, %d errors, %d warnings",
        report.node_count, report.connection_count, len(report.errors), len(report.warnings),
    )
    return report.to_dict()


def print_validation_report(result: Dict) -> None:
    """Pretty-print a validation result."""
    status = "VALID" if result["valid"] else "INVALID"
    print("=" * 60)
    print(f"VALIDATION REPORT: {status}")
    print("=" * 60)
    print(f"\nNodes: {result.get('nodeCount', 'N/A')}")
    print(f"Connections: {result.get('connectionCount', 'N/A')}")

    if result["errors"]:
        print(f"\nERRORS ({len(result['errors'])}):")
        for error in result["errors"]:
            print(f"  - {error}")

    if result["warnings"]:
        print(f"\nWARNINGS ({len(result['warnings'])}):")
        for warning in result["warnings"]:
            print(f"  - {warning}")

    if not result["errors"] and not result["warnings"]:
        print("\nNo issues detected!")


__all__ = [
    "validate_vs_graph",
    "print_validation_report",
]
