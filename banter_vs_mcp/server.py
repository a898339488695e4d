"""MCP server exposing the Banter visual scripting tools.

Run with ``banter-vs-mcp`` (stdio) or ``banter-vs-mcp --transport sse``.
Logs go to stderr; stdout belongs to the stdio transport.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.prompts import base

from . import bridge, catalogue, scene
from .asset import DEFAULT_FOLDER, write_vs_graph, write_webroot_js
from .config import BanterConfig, get_config, get_log_level
from .generator import generate_vs_graph
from .prompts import create_vs_graph_messages, debug_vs_graph_messages, vs_instructions
from .validator import validate_vs_graph

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = """\
Tools for authoring Unity Visual Scripting graphs for Banter spaces.

Workflow: generate_vs_graph -> validate_vs_graph -> write_vs_graph ->
check_import_status. Never hand-write GUIDs; let generate_vs_graph create
them. Banter node types use the flat namespace
(Banter.VisualScripting.OnGrab). Use list_vs_nodes/describe_vs_node to find
exact port names before wiring connections.

Scene edits such as create_gameobject, add_component or instantiate_prefab
are queued for the editor and applied on its next poll; batch_create and
batch_instantiate_prefabs send many in one command. Browser-side code goes
through write_webroot_js.
"""


def create_server(
    config: Optional[BanterConfig] = None,
    registry: Optional[catalogue.Registry] = None,
) -> FastMCP:
    """Create the MCP server with all tools and resources registered.

    Args:
        config: Optional fixed configuration (for testing); read from the
            environment on each call otherwise.
        registry: Optional pre-loaded node registry.
    """
    registry = registry or catalogue.load_registry()
    mcp = FastMCP("banter-vs", instructions=SERVER_INSTRUCTIONS)

    def _config() -> BanterConfig:
        return config or get_config()

    @mcp.tool(name="validate_vs_graph")
    def validate_vs_graph_tool(graph_json: str) -> Dict[str, Any]:
        """Validate Visual Scripting graph JSON before writing it to Unity.

        Returns valid, errors, warnings, nodeCount and connectionCount.
        """
        return validate_vs_graph(graph_json, registry)

    @mcp.tool(name="generate_vs_graph")
    def generate_vs_graph_tool(
        graph_name: str,
        nodes: List[Dict[str, Any]],
        connections: Optional[List[Dict[str, Any]]] = None,
        variables: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Generate a Visual Scripting graph with real GUIDs and required defaults.

        Args:
            graph_name: Name of the ScriptGraphAsset.
            nodes: ``{"localId", "type", "properties"?, "position"?}`` entries;
                type may be a short name such as "OnGrab".
            connections: ``{"from", "fromPort", "to", "toPort", "kind"}``
                entries, kind being "control" or "value".
            variables: ``{"name", "type", "defaultValue"?}`` entries.

        Returns:
            success, graphJson, assetContent, nodeCount, connectionCount and
            the validation report of the generated JSON.
        """
        result = generate_vs_graph(
            {
                "graphName": graph_name,
                "nodes": nodes,
                "connections": connections or [],
                "variables": variables or [],
            },
            registry,
        )
        if result["success"]:
            result["validation"] = validate_vs_graph(result["graphJson"], registry)
        return result

    @mcp.tool(name="write_vs_graph")
    def write_vs_graph_tool(
        graph_json: str,
        graph_name: str,
        folder: str = DEFAULT_FOLDER,
    ) -> Dict[str, Any]:
        """Write graph JSON as a .asset file under Assets/<folder>."""
        return write_vs_graph(graph_json, graph_name, folder, _config())

    @mcp.tool()
    def query_project_state(query: str, filter: Optional[str] = None) -> Dict[str, Any]:
        """Read Unity project state exported by the editor bridge.

        Args:
            query: hierarchy, components, prefabs, assets or all.
            filter: Case-insensitive match on item name or type.
        """
        return bridge.query_project_state(query, filter, _config())

    @mcp.tool()
    def check_import_status(
        asset_path: Optional[str] = None,
        wait_for_import: bool = True,
        timeout_ms: int = 10000,
    ) -> Dict[str, Any]:
        """Check whether Unity imported an asset without errors."""
        return bridge.check_import_status(asset_path, wait_for_import, timeout_ms, _config())

    @mcp.tool()
    def get_console_logs(level: str = "all", limit: int = 50) -> Dict[str, Any]:
        """Return recent Unity console entries (level: all, log, warning, error)."""
        return bridge.get_console_logs(level, limit, _config())

    @mcp.tool()
    def refresh_unity_assets(asset_path: Optional[str] = None) -> Dict[str, Any]:
        """Ask Unity to re-import one asset or the whole project."""
        return bridge.refresh_assets(asset_path, _config())

    @mcp.tool(name="write_webroot_js")
    def write_webroot_js_tool(code: str, filename: str) -> Dict[str, Any]:
        """Write runtime JavaScript (BS.* API) to Assets/WebRoot/<filename>."""
        return write_webroot_js(code, filename, _config())

    @mcp.tool()
    def create_gameobject(
        name: str,
        primitive_type: Optional[str] = None,
        position: Optional[List[float]] = None,
        rotation: Optional[List[float]] = None,
        scale: Optional[List[float]] = None,
        parent_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create an empty GameObject or a primitive (Cube, Sphere, Cylinder, Capsule, Plane, Quad).

        Vectors are [x, y, z]; rotation is in euler angles. Needs the editor bridge.
        """
        return scene.create_gameobject(
            name, primitive_type, position, rotation, scale, parent_path, _config()
        )

    @mcp.tool()
    def delete_gameobject(object_path: str) -> Dict[str, Any]:
        """Delete a GameObject by path ('Name' or 'Parent/Child')."""
        return scene.delete_gameobject(object_path, _config())

    @mcp.tool()
    def modify_gameobject(
        object_path: str,
        position: Optional[List[float]] = None,
        rotation: Optional[List[float]] = None,
        scale: Optional[List[float]] = None,
    ) -> Dict[str, Any]:
        """Change a GameObject's transform; omitted values are left alone."""
        return scene.modify_gameobject(object_path, position, rotation, scale, _config())

    @mcp.tool()
    def add_component(object_path: str, component_type: str) -> Dict[str, Any]:
        """Add a Unity or Banter component (e.g. Rigidbody, BanterGrababble)."""
        return scene.add_component(object_path, component_type, _config())

    @mcp.tool()
    def remove_component(object_path: str, component_type: str) -> Dict[str, Any]:
        """Remove a component from a GameObject."""
        return scene.remove_component(object_path, component_type, _config())

    @mcp.tool()
    def set_component_property(
        object_path: str, component_type: str, property_name: str, value: str
    ) -> Dict[str, Any]:
        """Set a component property; value is JSON text such as '2.5', 'true' or '[1,2,3]'."""
        return scene.set_component_property(
            object_path, component_type, property_name, value, _config()
        )

    @mcp.tool()
    def batch_create(objects: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Create many GameObjects in one command.

        Each entry takes name, primitiveType, position, rotation, scale and parentPath.
        """
        return scene.batch_create(objects, _config())

    @mcp.tool()
    def instantiate_prefab(
        prefab_path: str,
        name: Optional[str] = None,
        position: Optional[List[float]] = None,
        rotation: Optional[List[float]] = None,
        scale: Optional[List[float]] = None,
        parent_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Instantiate a prefab such as 'Assets/Prefabs/House.prefab'."""
        return scene.instantiate_prefab(
            prefab_path, name, position, rotation, scale, parent_path, _config()
        )

    @mcp.tool()
    def batch_instantiate_prefabs(prefabs: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Instantiate many prefabs in one command.

        Each entry takes prefabPath, name, position, rotation, scale and parentPath.
        """
        return scene.batch_instantiate_prefabs(prefabs, _config())

    @mcp.tool()
    def get_prefab_catalog(
        category: Optional[str] = None, search: Optional[str] = None, limit: int = 100
    ) -> Dict[str, Any]:
        """List cataloged prefabs, filtered by category and by name or path."""
        return scene.get_prefab_catalog(category, search, limit, _config())

    @mcp.tool()
    def scan_prefabs() -> Dict[str, Any]:
        """Ask Unity to rebuild the prefab catalog."""
        return scene.scan_prefabs(_config())

    @mcp.tool()
    def get_object_bounds(object_path: str) -> Dict[str, Any]:
        """World-space bounds (center, size, min, max) of a GameObject and its children."""
        return scene.get_object_bounds(object_path, config=_config())

    @mcp.tool()
    def list_vs_nodes(category: Optional[str] = None, keyword: Optional[str] = None) -> Dict[str, Any]:
        """List known node types, optionally by category or keyword."""
        if keyword:
            nodes = catalogue.find_nodes_by_keyword(keyword, limit=50, registry=registry)
            if category:
                nodes = [node for node in nodes if node.category.lower() == category.lower()]
        else:
            nodes = catalogue.list_nodes(category, registry)
        return {
            "count": len(nodes),
            "nodes": [
                {"name": node.short_name, "fullType": node.full_type, "category": node.category}
                for node in nodes
            ],
        }

    @mcp.tool()
    def describe_vs_node(name: str) -> Dict[str, Any]:
        """Return ports, category and notes for a node (short or full name)."""
        descriptor = catalogue.get_node_spec(name, registry)
        if descriptor:
            return {"success": True, "node": descriptor.to_dict()}

        status, detail = catalogue.classify_node_type(name, registry)
        result = {"success": False, "error": f"Unknown node type: {name}"}
        if status == catalogue.STATUS_WRONG_NAMESPACE:
            result["suggestion"] = detail
        elif status == catalogue.STATUS_UNSUPPORTED:
            result["error"] = f"{name} does not exist. {detail}"
        return result

    @mcp.resource("banter://vs-nodes")
    def vs_nodes_resource() -> str:
        """Every known node type with its ports."""
        return json.dumps(
            [node.to_dict() for node in catalogue.list_nodes(registry=registry)], indent=2
        )

    @mcp.resource("banter://vs-nodes/{name}")
    def vs_node_resource(name: str) -> str:
        """One node type with its ports."""
        descriptor = catalogue.get_node_spec(name, registry)
        if not descriptor:
            return json.dumps({"error": f"Unknown node type: {name}"})
        return json.dumps(descriptor.to_dict(), indent=2)

    @mcp.resource("banter://vs-instructions", mime_type="text/markdown")
    def vs_instructions_resource() -> str:
        """How to write Visual Scripting .asset files that Unity accepts."""
        return vs_instructions()

    @mcp.prompt(name="create_vs_graph")
    def create_vs_graph_prompt(purpose: Optional[str] = None) -> List[base.Message]:
        """Step-by-step guide for creating a Visual Scripting graph."""
        user, assistant = create_vs_graph_messages(purpose)
        return [base.UserMessage(user), base.AssistantMessage(assistant)]

    @mcp.prompt(name="debug_vs_graph")
    def debug_vs_graph_prompt(symptoms: Optional[str] = None) -> List[base.Message]:
        """Help debug a Visual Scripting graph that isn't working."""
        user, assistant = debug_vs_graph_messages(symptoms)
        return [base.UserMessage(user), base.AssistantMessage(assistant)]

    return mcp


def run_server(transport: str = "stdio") -> None:
    """Run the MCP server.

    Args:
        transport: Transport type ('stdio' or 'sse').
    """
    mcp = create_server()
    config = get_config()
    if config.unity_project_path:
        logger.info(
            "Unity project: %s (bridge %s)",
            config.unity_project_path,
            "detected" if config.has_unity_extension else "not detected",
        )
    else:
        logger.info("No Unity project configured; file tools are disabled")
    logger.info("Banter VS MCP running on %s", transport)
    mcp.run(transport=transport)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Banter Visual Scripting MCP server")
    parser.add_argument("--transport", choices=["stdio", "sse"], default="stdio")
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_server(args.transport)
    return 0


if __name__ == "__main__":
    sys.exit(main())
