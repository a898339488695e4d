"""Unity ``.asset``/``.meta`` rendering, and writing graphs and WebRoot scripts into a project."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from string import Template
from typing import Dict, Optional

from .bridge import refresh_assets
from .config import BanterConfig, get_config, validate_unity_project
from .guids import new_unity_guid

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "Scripts/VisualScripting"

ASSET_TEMPLATE = Template("""%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
--- !u!114 &11400000
MonoBehaviour:
  m_ObjectHideFlags: 0
  m_CorrespondingSourceObject: {fileID: 0}
  m_PrefabInstance: {fileID: 0}
  m_PrefabAsset: {fileID: 0}
  m_GameObject: {fileID: 0}
  m_Enabled: 1
  m_EditorHideFlags: 0
  m_Script: {fileID: 11500000, guid: 95e66c6366d904e98bc83428217d4fd7, type: 3}
  m_Name: ${graph_name}
  m_EditorClassIdentifier:
  _data:
    _json: '${escaped_json}'
    _objectReferences: []
""")

META_TEMPLATE = Template("""fileFormatVersion: 2
guid: ${guid}
MonoImporter:
  externalObjects: {}
  serializedVersion: 2
  defaultReferences: []
  executionOrder: 0
  icon: {instanceID: 0}
  userData:
  assetBundleName:
  assetBundleVariant:
""")

_JSON_LINE_PREFIX = "_json: '"
# Safe as a YAML plain scalar and as a file name.
_GRAPH_NAME_RE = re.compile(r"\w(?:[\w .()-]*[\w.()-])?")
_SCRIPT_NAME_RE = re.compile(r"\w[\w.-]*\.js")


def escape_single_quotes(text: str) -> str:
    return text.replace("'", "''")


def render_asset(graph_name: str, graph_json: str) -> str:
    """Wrap serialized graph JSON in the ScriptGraphAsset envelope."""
    return ASSET_TEMPLATE.substitute(
        graph_name=graph_name,
        escaped_json=escape_single_quotes(graph_json),
    )


def render_meta(guid: Optional[str] = None) -> str:
    return META_TEMPLATE.substitute(guid=guid or new_unity_guid())


def extract_graph_json(asset_text: str) -> Optional[str]:
    """Return the graph JSON embedded in an ``.asset`` file, or None."""
    for line in asset_text.splitlines():
        stripped = line.strip()
        if stripped.startswith(_JSON_LINE_PREFIX) and stripped.endswith("'"):
            return stripped[len(_JSON_LINE_PREFIX):-1].replace("''", "'")
    return None


def is_valid_graph_name(graph_name) -> bool:
    return isinstance(graph_name, str) and bool(_GRAPH_NAME_RE.fullmatch(graph_name))


def write_vs_graph(
    graph_json: str,
    graph_name: str,
    folder: str = DEFAULT_FOLDER,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """
    Write a graph as ``Assets/<folder>/<graph_name>.asset``.

    A ``.meta`` file is created only when none exists, so re-writing a graph
    keeps the Unity asset GUID stable.

    Returns:
        Dict with success, assetPath (relative to the project) and message,
        or success False with an error.
    """
    config = config or get_config()
    project = validate_unity_project(config)
    if not project["valid"]:
        return {"success": False, "error": f"{project['error']}. Cannot write to Unity project."}

    if not is_valid_graph_name(graph_name):
        return {"success": False, "error": f"Invalid graph name: {graph_name!r}"}

    try:
        graph_data = json.loads(graph_json)
    except (TypeError, ValueError):
        return {"success": False, "error": "Invalid JSON provided for graph"}
    if not isinstance(graph_data, dict) or "graph" not in graph_data:
        return {"success": False, "error": "Graph JSON must have a 'graph' root object"}

    assets_root = config.assets_path.resolve()
    target_dir = (config.assets_path / (folder or "")).resolve()
    if target_dir != assets_root and assets_root not in target_dir.parents:
        return {"success": False, "error": f"Folder must stay inside Assets: {folder}"}

    asset_path = target_dir / f"{graph_name}.asset"
    meta_path = target_dir / f"{graph_name}.asset.meta"
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        asset_path.write_text(render_asset(graph_name, graph_json), encoding="utf-8")
        if not meta_path.exists():
            meta_path.write_text(render_meta(), encoding="utf-8")
    except OSError as exc:
        return {"success": False, "error": str(exc)}

    logger.info("Wrote graph %s to %s", graph_name, asset_path)

    if config.has_unity_extension:
        refresh = refresh_assets(str(asset_path), config)
        if not refresh["success"]:
            logger.warning("Refresh request failed: %s", refresh["error"])

    relative_path = str(asset_path.relative_to(Path(config.unity_project_path).resolve()))
    return {
        "success": True,
        "assetPath": relative_path,
        "message": f"Graph written successfully to {relative_path}",
    }


def write_webroot_js(code: str, filename: str, config: Optional[BanterConfig] = None) -> Dict:
    """
    Write browser-side JavaScript as ``Assets/WebRoot/<filename>``.

    ``filename`` must be a plain ``.js`` file name; an existing file is
    replaced.
    """
    config = config or get_config()
    project = validate_unity_project(config)
    if not project["valid"]:
        return {"success": False, "error": f"{project['error']}. Cannot write to Unity project."}

    if not isinstance(code, str):
        return {"success": False, "error": "JavaScript code must be a string"}
    if not isinstance(filename, str) or not _SCRIPT_NAME_RE.fullmatch(filename):
        return {"success": False, "error": f"Invalid script file name: {filename!r} (expected e.g. 'main.js')"}

    script_path = config.web_root_path / filename
    try:
        config.web_root_path.mkdir(parents=True, exist_ok=True)
        script_path.write_text(code, encoding="utf-8")
    except OSError as exc:
        return {"success": False, "error": str(exc)}

    logger.info("Wrote %d characters of JavaScript to %s", len(code), script_path)
    if config.has_unity_extension:
        refresh = refresh_assets(str(script_path), config)
        if not refresh["success"]:
            logger.warning("Refresh request failed: %s", refresh["error"])

    relative_path = str(script_path.resolve().relative_to(Path(config.unity_project_path).resolve()))
    return {
        "success": True,
        "filePath": relative_path,
        "message": f"JavaScript written to {relative_path}",
    }


__all__ = [
    "ASSET_TEMPLATE",
    "META_TEMPLATE",
    "escape_single_quotes",
    "render_asset",
    "render_meta",
    "extract_graph_json",
    "is_valid_graph_name",
    "write_vs_graph",
    "write_webroot_js",
]
