"""Environment configuration for the Banter MCP tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Mapping, NamedTuple, Optional

PROJECT_ENV_VARS = ("UNITY_PROJECT_PATH", "BANTER_PROJECT_PATH")
LOG_LEVEL_ENV_VAR = "BANTER_MCP_LOG_LEVEL"


class BanterConfig(NamedTuple):
    unity_project_path: str
    assets_path: Path
    mcp_state_path: Path
    mcp_commands_path: Path
    web_root_path: Path
    has_unity_extension: bool


def get_config(environ: Optional[Mapping[str, str]] = None) -> BanterConfig:
    """Build the configuration from environment variables.

    ``UNITY_PROJECT_PATH`` wins over ``BANTER_PROJECT_PATH``. An empty
    project path is allowed; tools that need a project report it.
    """
    environ = os.environ if environ is None else environ
    project_path = ""
    for name in PROJECT_ENV_VARS:
        if environ.get(name):
            project_path = environ[name]
            break

    assets_path = Path(project_path) / "Assets"
    state_path = assets_path / "_MCP" / "state"
    return BanterConfig(
        unity_project_path=project_path,
        assets_path=assets_path,
        mcp_state_path=state_path,
        mcp_commands_path=assets_path / "_MCP" / "commands",
        web_root_path=assets_path / "WebRoot",
        has_unity_extension=bool(project_path) and state_path.is_dir(),
    )


def get_log_level(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return (environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()


def validate_unity_project(config: BanterConfig) -> Dict:
    """Return ``{"valid": bool, "error"?: str}`` for the configured project."""
    if not config.unity_project_path:
        return {"valid": False, "error": "UNITY_PROJECT_PATH not set"}

    if not Path(config.unity_project_path).exists():
        return {
            "valid": False,
            "error": f"Unity project path does not exist: {config.unity_project_path}",
        }

    if not config.assets_path.is_dir():
        return {"valid": False, "error": f"Assets folder not found: {config.assets_path}"}

    return {"valid": True}


__all__ = [
    "BanterConfig",
    "get_config",
    "get_log_level",
    "validate_unity_project",
]
