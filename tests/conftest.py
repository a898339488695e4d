"""Shared fixtures for the Banter VS MCP tests.

Provides the loaded node registry, hand-crafted graph builders and
throwaway Unity project layouts under ``tmp_path``.
"""

import json
import uuid
from pathlib import Path

import pytest

from banter_vs_mcp import catalogue
from banter_vs_mcp.config import get_config

REPO_ROOT = Path(__file__).resolve().parent.parent
CATALOGUE_PATH = REPO_ROOT / "banter_vs_mcp" / "reference" / "vs_catalogue.json"


@pytest.fixture
def registry():
    """Registry loaded fresh from the packaged catalogue."""
    return catalogue.load_registry(path=str(CATALOGUE_PATH), force_reload=True)


def _node(node_id, node_type, **fields):
    node = {
        "position": {"x": 0, "y": 0},
        "guid": str(uuid.uuid4()),
        "$version": "A",
        "$type": node_type,
        "$id": node_id,
        "defaultValues": {},
    }
    node.update(fields)
    return node


def _connection(source, source_key, dest, dest_key, kind="control", **fields):
    conn = {
        "sourceUnit": {"$ref": source},
        "sourceKey": source_key,
        "destinationUnit": {"$ref": dest},
        "destinationKey": dest_key,
        "guid": str(uuid.uuid4()),
        "$type": (
            "Unity.VisualScripting.ControlConnection" if kind == "control"
            else "Unity.VisualScripting.ValueConnection"
        ),
    }
    conn.update(fields)
    return conn


def _graph(units=(), control=(), value=(), variables=(), **extra):
    graph = {
        "variables": {
            "Kind": "Flow",
            "collection": {"$content": list(variables), "$version": "A"},
            "$version": "A",
        },
        "controlInputDefinitions": [],
        "controlOutputDefinitions": [],
        "valueInputDefinitions": [],
        "valueOutputDefinitions": [],
        "units": {"$content": list(units), "$version": "A"},
        "controlConnections": {"$content": list(control), "$version": "A"},
        "valueConnections": {"$content": list(value), "$version": "A"},
        "$version": "A",
    }
    graph.update(extra)
    return json.dumps({"graph": graph})


@pytest.fixture
def make_node():
    return _node


@pytest.fixture
def make_connection():
    return _connection


@pytest.fixture
def make_graph():
    """Return a builder that serializes units/connections into graph JSON."""
    return _graph


@pytest.fixture
def unity_project(tmp_path):
    """A bare Unity project (Assets only, no editor bridge)."""
    (tmp_path / "Assets").mkdir()
    return get_config({"UNITY_PROJECT_PATH": str(tmp_path)})


@pytest.fixture
def bridge_project(tmp_path):
    """A Unity project where the editor bridge has created its state folder."""
    (tmp_path / "Assets" / "_MCP" / "state").mkdir(parents=True)
    return get_config({"UNITY_PROJECT_PATH": str(tmp_path)})
