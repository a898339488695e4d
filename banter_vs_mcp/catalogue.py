"""Node type registry for Banter visual scripting graphs.

Loads the reference JSON once and freezes it into immutable descriptors so
the generator and validator can share it without copying or mutation.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

_CATALOGUE_ENV_VAR = "BANTER_VS_CATALOGUE_PATH"
_DEFAULT_CATALOGUE_NAME = "vs_catalogue.json"

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent
_REFERENCE_DIR = _PACKAGE_DIR / "reference"

BANTER_PREFIX = "Banter.VisualScripting."
UNITY_PREFIX = "Unity.VisualScripting."

CONTROL_CONNECTION_TYPE = UNITY_PREFIX + "ControlConnection"
VALUE_CONNECTION_TYPE = UNITY_PREFIX + "ValueConnection"

SET_VARIABLE_TYPE = UNITY_PREFIX + "SetVariable"
GET_VARIABLE_TYPE = UNITY_PREFIX + "GetVariable"
LITERAL_TYPE = UNITY_PREFIX + "Literal"
GET_MEMBER_TYPE = UNITY_PREFIX + "GetMember"
SET_MEMBER_TYPE = UNITY_PREFIX + "SetMember"
INVOKE_MEMBER_TYPE = UNITY_PREFIX + "InvokeMember"
MEMBER_TYPES = frozenset({GET_MEMBER_TYPE, SET_MEMBER_TYPE, INVOKE_MEMBER_TYPE})
SELF_TYPES = frozenset({UNITY_PREFIX + "This", UNITY_PREFIX + "Self"})

# Per-type variant of the loosely typed ``defaultValues`` bag.
SHAPE_EVENT = "event"
SHAPE_MEMBER = "member"
SHAPE_SET_VARIABLE = "set_variable"
SHAPE_GET_VARIABLE = "get_variable"
SHAPE_LITERAL = "literal"
SHAPE_SELF = "self"
SHAPE_GENERIC = "generic"

STATUS_KNOWN = "known"
STATUS_WRONG_NAMESPACE = "wrong_namespace"
STATUS_UNSUPPORTED = "unsupported"
STATUS_UNKNOWN = "unknown"

CATEGORIES = (
    "Events", "Player", "Space", "User", "UI", "Flow",
    "Logic", "Math", "Variables", "Members", "Utility", "Time",
)
PORT_KINDS = ("control", "value")


class PortSpec(NamedTuple):
    name: str
    kind: str
    value_type: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {"name": self.name, "type": self.kind}
        if self.value_type:
            data["valueType"] = self.value_type
        return data


class NodeTypeDescriptor(NamedTuple):
    short_name: str
    full_type: str
    category: str
    description: str
    inputs: Tuple[PortSpec, ...]
    outputs: Tuple[PortSpec, ...]
    is_event_node: bool
    requires_target_default: bool
    notes: Tuple[str, ...] = ()

    def port_names(self, is_output: bool = True) -> FrozenSet[str]:
        ports = self.outputs if is_output else self.inputs
        return frozenset(port.name for port in ports)

    def to_dict(self) -> Dict:
        return {
            "name": self.short_name,
            "fullType": self.full_type,
            "category": self.category,
            "description": self.description,
            "inputs": [port.to_dict() for port in self.inputs],
            "outputs": [port.to_dict() for port in self.outputs],
            "isEventNode": self.is_event_node,
            "requiresTargetDefault": self.requires_target_default,
            "notes": list(self.notes),
        }


class Registry(NamedTuple):
    by_short_name: Mapping[str, NodeTypeDescriptor]
    by_full_type: Mapping[str, NodeTypeDescriptor]
    event_types: FrozenSet[str]
    type_handles: Mapping[str, str]
    port_corrections: Mapping[str, Tuple[str, str]]
    node_port_corrections: Mapping[str, Mapping[str, str]]
    deprecated_segments: Tuple[str, ...]
    unsupported_types: Mapping[str, str]
    source: str


_REGISTRY: Optional[Registry] = None


def _candidate_catalogue_paths(preferred_path: Optional[str]) -> Iterable[Path]:
    env_path = os.environ.get(_CATALOGUE_ENV_VAR)

    candidates: List[Path] = []
    if preferred_path:
        candidates.append(Path(preferred_path))
    if env_path:
        candidates.append(Path(env_path))
    candidates.append(_REFERENCE_DIR / _DEFAULT_CATALOGUE_NAME)
    candidates.append(_PROJECT_ROOT / "reference" / _DEFAULT_CATALOGUE_NAME)

    seen: set = set()
    for path in candidates:
        resolved = path.expanduser()
        if resolved in seen:
            continue
        seen.add(resolved)
        yield resolved


def _resolve_catalogue_path(preferred_path: Optional[str]) -> Optional[Path]:
    for path in _candidate_catalogue_paths(preferred_path):
        if path.exists():
            return path
    return None


def _parse_ports(entry: Dict, key: str, source: Path) -> Tuple[PortSpec, ...]:
    ports = []
    for port in entry.get(key, []):
        kind = port.get("type")
        if kind not in PORT_KINDS:
            raise ValueError(
                f"Port '{port.get('name')}' on {entry.get('fullType')} has invalid kind "
                f"{kind!r} in {source}"
            )
        ports.append(PortSpec(port["name"], kind, port.get("valueType")))
    return tuple(ports)


def _build_descriptor(entry: Dict, deprecated_segments: Tuple[str, ...], source: Path) -> NodeTypeDescriptor:
    short_name = entry.get("name")
    full_type = entry.get("fullType")
    if not short_name or not full_type:
        raise ValueError(f"Catalogue entry without name/fullType in {source}: {entry}")
    if full_type.startswith(BANTER_PREFIX) and any(seg in full_type for seg in deprecated_segments):
        raise ValueError(f"Catalogue entry {full_type} uses a nested namespace in {source}")

    category = entry.get("category")
    if category not in CATEGORIES:
        raise ValueError(f"Catalogue entry {full_type} has unknown category {category!r}")

    properties = entry.get("properties") or {}
    return NodeTypeDescriptor(
        short_name=short_name,
        full_type=full_type,
        category=category,
        description=entry.get("description", ""),
        inputs=_parse_ports(entry, "inputs", source),
        outputs=_parse_ports(entry, "outputs", source),
        is_event_node=properties.get("coroutine") is False,
        requires_target_default=full_type in MEMBER_TYPES,
        notes=tuple(entry.get("notes", [])),
    )


def _read_catalogue_file(resolved: Path) -> Registry:
    with resolved.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    if not isinstance(data, dict) or not isinstance(data.get("nodes"), list):
        raise ValueError(f"Unsupported catalogue format in {resolved}")

    deprecated_segments = tuple(data.get("deprecated_segments", []))
    by_short: Dict[str, NodeTypeDescriptor] = {}
    by_full: Dict[str, NodeTypeDescriptor] = {}
    for entry in data["nodes"]:
        descriptor = _build_descriptor(entry, deprecated_segments, resolved)
        if descriptor.short_name in by_short:
            raise ValueError(f"Duplicate node name '{descriptor.short_name}' in {resolved}")
        if descriptor.full_type in by_full:
            raise ValueError(f"Duplicate node type '{descriptor.full_type}' in {resolved}")
        by_short[descriptor.short_name] = descriptor
        by_full[descriptor.full_type] = descriptor

    corrections = {
        wrong: (spec["node"], spec["correct"])
        for wrong, spec in data.get("port_corrections", {}).items()
    }
    node_corrections = {
        full_type: MappingProxyType(dict(mapping))
        for full_type, mapping in data.get("node_port_corrections", {}).items()
    }

    return Registry(
        by_short_name=MappingProxyType(by_short),
        by_full_type=MappingProxyType(by_full),
        event_types=frozenset(d.full_type for d in by_full.values() if d.is_event_node),
        type_handles=MappingProxyType(dict(data.get("type_handles", {}))),
        port_corrections=MappingProxyType(corrections),
        node_port_corrections=MappingProxyType(node_corrections),
        deprecated_segments=deprecated_segments,
        unsupported_types=MappingProxyType(dict(data.get("unsupported_types", {}))),
        source=str(resolved),
    )


def load_registry(path: Optional[str] = None, force_reload: bool = False) -> Registry:
    """Load and cache the node type registry."""
    global _REGISTRY

    if _REGISTRY is not None and not force_reload and not path:
        return _REGISTRY

    resolved = _resolve_catalogue_path(path)
    if not resolved:
        raise FileNotFoundError(
            "Could not locate the visual scripting node catalogue. Set "
            f"{_CATALOGUE_ENV_VAR} or place {_DEFAULT_CATALOGUE_NAME} in banter_vs_mcp/reference."
        )

    registry = _read_catalogue_file(resolved)
    logger.debug("Loaded %d node types from %s", len(registry.by_full_type), resolved)
    _REGISTRY = registry
    return _REGISTRY


def get_catalogue_source() -> Optional[str]:
    """Return the resolved catalogue path currently in use."""
    return _REGISTRY.source if _REGISTRY else None


def get_node_spec(name: str, registry: Optional[Registry] = None) -> Optional[NodeTypeDescriptor]:
    """Return the descriptor for a short or fully-qualified name, or None."""
    registry = registry or load_registry()
    return registry.by_short_name.get(name) or registry.by_full_type.get(name)


def resolve_node_type(name: str, registry: Optional[Registry] = None) -> str:
    """Map a short name to its full type; unknown strings pass through unchanged."""
    spec = get_node_spec(name, registry)
    return spec.full_type if spec else name


def event_node_types(registry: Optional[Registry] = None) -> FrozenSet[str]:
    registry = registry or load_registry()
    return registry.event_types


def port_corrections(registry: Optional[Registry] = None) -> Mapping[str, Tuple[str, str]]:
    """Known-wrong source port names mapped to ``(node type, correct port)``."""
    registry = registry or load_registry()
    return registry.port_corrections


def node_port_corrections(full_type: str, registry: Optional[Registry] = None) -> Mapping[str, str]:
    registry = registry or load_registry()
    return registry.node_port_corrections.get(full_type, MappingProxyType({}))


def type_handle(type_name: str, registry: Optional[Registry] = None) -> str:
    """Return the assembly-qualified identity for a semantic type name."""
    registry = registry or load_registry()
    return registry.type_handles.get(type_name, type_name)


def node_shape(full_type: str, registry: Optional[Registry] = None) -> str:
    """Classify a node type into the variant of its ``defaultValues`` bag."""
    registry = registry or load_registry()
    if full_type in registry.event_types:
        return SHAPE_EVENT
    if full_type in MEMBER_TYPES:
        return SHAPE_MEMBER
    if full_type == SET_VARIABLE_TYPE:
        return SHAPE_SET_VARIABLE
    if full_type == GET_VARIABLE_TYPE:
        return SHAPE_GET_VARIABLE
    if full_type == LITERAL_TYPE:
        return SHAPE_LITERAL
    if full_type in SELF_TYPES:
        return SHAPE_SELF
    return SHAPE_GENERIC


def flat_banter_type(full_type: str) -> str:
    """Collapse a nested Banter path to the flat namespace form."""
    return BANTER_PREFIX + full_type.rsplit(".", 1)[-1]


def classify_node_type(full_type: str, registry: Optional[Registry] = None) -> Tuple[str, Optional[str]]:
    """Classify a fully-qualified type.

    Returns ``(status, detail)`` where detail is the suggested flat type for
    ``wrong_namespace``, the guidance text for ``unsupported``, and None
    otherwise.
    """
    registry = registry or load_registry()
    if full_type in registry.by_full_type:
        return STATUS_KNOWN, None
    if full_type in registry.unsupported_types:
        return STATUS_UNSUPPORTED, registry.unsupported_types[full_type]
    if full_type.startswith(BANTER_PREFIX) and any(
        segment in full_type for segment in registry.deprecated_segments
    ):
        return STATUS_WRONG_NAMESPACE, flat_banter_type(full_type)
    return STATUS_UNKNOWN, None


def list_nodes(category: Optional[str] = None, registry: Optional[Registry] = None) -> List[NodeTypeDescriptor]:
    registry = registry or load_registry()
    nodes = list(registry.by_full_type.values())
    if category:
        wanted = category.lower()
        nodes = [node for node in nodes if node.category.lower() == wanted]
    return nodes


def find_nodes_by_keyword(
    keyword: str, limit: int = 10, registry: Optional[Registry] = None
) -> List[NodeTypeDescriptor]:
    """Case-insensitive search over short name, full type and description."""
    registry = registry or load_registry()
    needle = keyword.lower()
    matches = []
    for node in registry.by_full_type.values():
        haystack = " ".join((node.short_name, node.full_type, node.description)).lower()
        if needle in haystack:
            matches.append(node)
            if len(matches) >= limit:
                break
    return matches


__all__ = [
    "PortSpec",
    "NodeTypeDescriptor",
    "Registry",
    "load_registry",
    "get_catalogue_source",
    "get_node_spec",
    "resolve_node_type",
    "event_node_types",
    "port_corrections",
    "node_port_corrections",
    "type_handle",
    "node_shape",
    "flat_banter_type",
    "classify_node_type",
    "list_nodes",
    "find_nodes_by_keyword",
]
