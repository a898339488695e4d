"""Scene and prefab edits relayed to the Unity editor.

Each edit becomes one command file written through ``bridge.send_command``;
the editor extension applies it on its next poll. Results only confirm that
the command was queued, except for ``get_object_bounds`` which waits for the
editor's answer.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Dict, List, Optional, Sequence

from .bridge import send_command
from .config import BanterConfig, get_config

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = ("Cube", "Sphere", "Cylinder", "Capsule", "Plane", "Quad")

PREFAB_CATALOG_FILE = "prefab-catalog.json"
BOUNDS_RESULT_FILE = "bounds-result.json"
BOUNDS_POLL_INTERVAL = 0.1
# Accept a bounds result written shortly before the request.
BOUNDS_CLOCK_SLACK_MS = 1000

ORIGIN = (0, 0, 0)
UNIT_SCALE = (1, 1, 1)


class SceneCommandError(ValueError):
    """Raised for arguments that cannot form a valid editor command."""


def _vector(label: str, value, default: Optional[Sequence] = None) -> Optional[List]:
    if value is None:
        return list(default) if default is not None else None
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 3
        or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    ):
        raise SceneCommandError(f"{label} must be [x, y, z], got {value!r}")
    return list(value)


def _required(label: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SceneCommandError(f"{label} must be a non-empty string")
    return value


def _primitive(primitive_type) -> str:
    if not primitive_type:
        return ""
    if primitive_type not in PRIMITIVE_TYPES:
        raise SceneCommandError(
            f"Unknown primitiveType {primitive_type!r}; use one of {', '.join(PRIMITIVE_TYPES)} or leave empty"
        )
    return primitive_type


def _create_command(spec: Dict) -> Dict:
    return {
        "type": "create_gameobject",
        "name": _required("name", spec.get("name")),
        "primitiveType": _primitive(spec.get("primitiveType")),
        "position": _vector("position", spec.get("position"), ORIGIN),
        "rotation": _vector("rotation", spec.get("rotation"), ORIGIN),
        "scale": _vector("scale", spec.get("scale"), UNIT_SCALE),
        "parentPath": spec.get("parentPath") or None,
    }


def _instantiate_command(spec: Dict) -> Dict:
    return {
        "type": "instantiate_prefab",
        "prefabPath": _required("prefabPath", spec.get("prefabPath")),
        "name": spec.get("name") or None,
        "position": _vector("position", spec.get("position"), ORIGIN),
        "rotation": _vector("rotation", spec.get("rotation"), ORIGIN),
        "scale": _vector("scale", spec.get("scale"), UNIT_SCALE),
        "parentPath": spec.get("parentPath") or None,
    }


def _relay(command: Dict, config: Optional[BanterConfig], **extra) -> Dict:
    result = send_command(command, config)
    if not result["success"]:
        return result
    result.update(extra)
    return result


def create_gameobject(
    name: str,
    primitive_type: Optional[str] = None,
    position: Optional[Sequence[float]] = None,
    rotation: Optional[Sequence[float]] = None,
    scale: Optional[Sequence[float]] = None,
    parent_path: Optional[str] = None,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """Create an empty GameObject or a primitive under the scene root or ``parent_path``."""
    try:
        command = _create_command({
            "name": name,
            "primitiveType": primitive_type,
            "position": position,
            "rotation": rotation,
            "scale": scale,
            "parentPath": parent_path,
        })
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}

    label = f" ({command['primitiveType']})" if command["primitiveType"] else ""
    return _relay(
        command,
        config,
        message=f"Created GameObject '{name}'{label}",
        details={
            "name": name,
            "primitiveType": command["primitiveType"] or "Empty",
            "position": command["position"],
            "rotation": command["rotation"],
            "scale": command["scale"],
            "parent": command["parentPath"] or "Scene Root",
        },
    )


def delete_gameobject(object_path: str, config: Optional[BanterConfig] = None) -> Dict:
    try:
        command = {"type": "delete_gameobject", "objectPath": _required("objectPath", object_path)}
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(command, config, message=f"Delete command sent for '{object_path}'")


def modify_gameobject(
    object_path: str,
    position: Optional[Sequence[float]] = None,
    rotation: Optional[Sequence[float]] = None,
    scale: Optional[Sequence[float]] = None,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """Change any of position, rotation and scale; omitted values stay as they are."""
    try:
        command = {
            "type": "modify_gameobject",
            "objectPath": _required("objectPath", object_path),
            "position": _vector("position", position),
            "rotation": _vector("rotation", rotation),
            "scale": _vector("scale", scale),
        }
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}

    changes = [
        f"{key}: {command[key]}" for key in ("position", "rotation", "scale") if command[key] is not None
    ]
    return _relay(
        command,
        config,
        message=f"Modify command sent for '{object_path}'",
        changes=changes or ["No changes specified"],
    )


def add_component(object_path: str, component_type: str, config: Optional[BanterConfig] = None) -> Dict:
    try:
        command = {
            "type": "add_component",
            "objectPath": _required("objectPath", object_path),
            "componentType": _required("componentType", component_type),
        }
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(command, config, message=f"Add component command sent: {component_type} to '{object_path}'")


def remove_component(object_path: str, component_type: str, config: Optional[BanterConfig] = None) -> Dict:
    try:
        command = {
            "type": "remove_component",
            "objectPath": _required("objectPath", object_path),
            "componentType": _required("componentType", component_type),
        }
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(
        command, config, message=f"Remove component command sent: {component_type} from '{object_path}'"
    )


def set_component_property(
    object_path: str,
    component_type: str,
    property_name: str,
    value,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """Set one serialized property. Non-string values are sent as their JSON text."""
    try:
        command = {
            "type": "set_component_property",
            "objectPath": _required("objectPath", object_path),
            "componentType": _required("componentType", component_type),
            "propertyName": _required("propertyName", property_name),
            "value": value if isinstance(value, str) else json.dumps(value),
        }
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(
        command,
        config,
        message=(
            f"Set property command sent: {component_type}.{property_name} = {command['value']} "
            f"on '{object_path}'"
        ),
    )


def _batch(specs, build, label: str):
    if not isinstance(specs, list) or not specs:
        raise SceneCommandError(f"{label} must be a non-empty list")
    commands = []
    for index, spec in enumerate(specs):
        if not isinstance(spec, dict):
            raise SceneCommandError(f"{label}[{index}] must be an object")
        try:
            commands.append(build(spec))
        except SceneCommandError as exc:
            raise SceneCommandError(f"{label}[{index}]: {exc}") from exc
    # The editor expects each batched command as its own JSON string.
    return {"type": "batch", "commands": [json.dumps(command) for command in commands]}, commands


def batch_create(objects: List[Dict], config: Optional[BanterConfig] = None) -> Dict:
    """Create many GameObjects with a single command file."""
    try:
        command, commands = _batch(objects, _create_command, "objects")
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(
        command,
        config,
        message=f"Batch create command sent: {len(commands)} objects",
        objectCount=len(commands),
        objects=[entry["name"] for entry in commands],
    )


def instantiate_prefab(
    prefab_path: str,
    name: Optional[str] = None,
    position: Optional[Sequence[float]] = None,
    rotation: Optional[Sequence[float]] = None,
    scale: Optional[Sequence[float]] = None,
    parent_path: Optional[str] = None,
    config: Optional[BanterConfig] = None,
) -> Dict:
    try:
        command = _instantiate_command({
            "prefabPath": prefab_path,
            "name": name,
            "position": position,
            "rotation": rotation,
            "scale": scale,
            "parentPath": parent_path,
        })
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(
        command,
        config,
        message=f"Instantiate prefab command sent: {prefab_path}",
        details={
            "prefabPath": prefab_path,
            "name": name or "(prefab name)",
            "position": command["position"],
            "rotation": command["rotation"],
            "scale": command["scale"],
            "parent": command["parentPath"] or "Scene Root",
        },
    )


def batch_instantiate_prefabs(prefabs: List[Dict], config: Optional[BanterConfig] = None) -> Dict:
    try:
        command, commands = _batch(prefabs, _instantiate_command, "prefabs")
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}
    return _relay(
        command,
        config,
        message=f"Batch instantiate command sent: {len(commands)} prefabs",
        prefabCount=len(commands),
        prefabs=[entry["prefabPath"].rsplit("/", 1)[-1] for entry in commands],
    )


def scan_prefabs(config: Optional[BanterConfig] = None) -> Dict:
    return _relay(
        {"type": "scan_prefabs"},
        config,
        message="Scan prefabs command sent to Unity. The catalog will be generated shortly.",
        note="Use get_prefab_catalog after a few seconds to retrieve the results.",
    )


def get_prefab_catalog(
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """Read the editor's prefab catalogue, filtered by category and name/path search."""
    config = config or get_config()
    catalog_path = config.mcp_state_path / PREFAB_CATALOG_FILE
    if not config.unity_project_path or not catalog_path.exists():
        return {
            "success": False,
            "error": (
                "Prefab catalog not found. Use scan_prefabs to generate it, or ensure Unity "
                "is running with BanterMCPBridge."
            ),
        }

    try:
        catalog = json.loads(catalog_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return {"success": False, "error": f"Error reading {PREFAB_CATALOG_FILE}: {exc}"}
    categories = catalog.get("categories") if isinstance(catalog, dict) else None
    if not isinstance(categories, dict):
        return {"success": False, "error": f"Malformed {PREFAB_CATALOG_FILE}: missing 'categories'"}

    prefabs = []
    for name, data in categories.items():
        if category and category.lower() not in name.lower():
            continue
        if isinstance(data, dict) and isinstance(data.get("prefabs"), list):
            prefabs.extend(entry for entry in data["prefabs"] if isinstance(entry, dict))

    if search:
        needle = search.lower()
        prefabs = [
            entry for entry in prefabs
            if needle in str(entry.get("name", "")).lower() or needle in str(entry.get("path", "")).lower()
        ]

    matching = len(prefabs)
    prefabs = prefabs[:limit or 100]
    timestamp = catalog.get("timestamp")
    age = (
        f"{round((time.time() * 1000 - timestamp) / 60000)} minutes ago"
        if isinstance(timestamp, (int, float)) else "unknown"
    )
    return {
        "success": True,
        "totalInCatalog": catalog.get("totalCount", matching),
        "matchingResults": matching,
        "returnedResults": len(prefabs),
        "catalogAge": age,
        "categories": {
            name: data.get("count", 0) if isinstance(data, dict) else 0
            for name, data in categories.items()
        },
        "prefabs": [
            {
                "name": entry.get("name"),
                "path": entry.get("path"),
                "category": entry.get("category"),
                "boundsSize": entry.get("boundsSize"),
                "boundsCenter": entry.get("boundsCenter"),
            }
            for entry in prefabs
        ],
    }


def get_object_bounds(
    object_path: str, timeout_ms: int = 5000, config: Optional[BanterConfig] = None
) -> Dict:
    """Ask the editor for an object's world-space bounds and wait for the answer."""
    config = config or get_config()
    try:
        command = {"type": "get_object_bounds", "objectPath": _required("objectPath", object_path)}
    except SceneCommandError as exc:
        return {"success": False, "error": str(exc)}

    requested_ms = time.time() * 1000
    sent = send_command(command, config)
    if not sent["success"]:
        return sent

    bounds_path = config.mcp_state_path / BOUNDS_RESULT_FILE
    deadline = time.monotonic() + timeout_ms / 1000.0
    while time.monotonic() < deadline:
        try:
            data = json.loads(bounds_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            data = None
        except (OSError, ValueError):
            # Possibly half written; read again on the next poll.
            data = None

        if (
            isinstance(data, dict)
            and data.get("objectPath") == object_path
            and isinstance(data.get("timestamp"), (int, float))
            and data["timestamp"] > requested_ms - BOUNDS_CLOCK_SLACK_MS
        ):
            try:
                bounds_path.unlink()
            except OSError as exc:
                logger.warning("Could not remove %s: %s", bounds_path, exc)
            if data.get("success"):
                return {"success": True, "objectPath": object_path, "bounds": data.get("bounds")}
            return {
                "success": False,
                "objectPath": object_path,
                "error": data.get("error") or "Object not found",
            }
        time.sleep(BOUNDS_POLL_INTERVAL)

    logger.warning("Timed out after %dms waiting for bounds of %s", timeout_ms, object_path)
    return {"success": False, "error": "Timeout waiting for bounds result from Unity", "objectPath": object_path}


__all__ = [
    "PRIMITIVE_TYPES",
    "create_gameobject",
    "delete_gameobject",
    "modify_gameobject",
    "add_component",
    "remove_component",
    "set_component_property",
    "batch_create",
    "instantiate_prefab",
    "batch_instantiate_prefabs",
    "scan_prefabs",
    "get_prefab_catalog",
    "get_object_bounds",
]
