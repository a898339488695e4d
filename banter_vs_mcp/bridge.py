"""File-based command relay to the Unity editor bridge.

The editor extension polls ``Assets/_MCP/commands`` for JSON command files
and publishes project snapshots as JSON files under ``Assets/_MCP/state``.
Every function here returns a result dict; expected failures never raise.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Dict, Optional

from .config import BanterConfig, get_config

logger = logging.getLogger(__name__)

STATE_FILES = {
    "hierarchy": "scene-hierarchy.json",
    "components": "components.json",
    "prefabs": "prefabs.json",
    "assets": "assets.json",
}
IMPORT_STATUS_FILE = "import-status.json"
CONSOLE_LOG_FILE = "console-log.json"

EXPORT_RETRY_DELAY = 0.5
IMPORT_POLL_INTERVAL = 0.25
IMPORT_STATUS_MAX_AGE_MS = 5000

BRIDGE_MISSING = (
    "Unity MCP Bridge extension not detected. Is Unity Editor running with "
    "BanterMCPBridge.cs installed?"
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _write_command_file(config: BanterConfig, filename: str, payload: Dict) -> Path:
    config.mcp_commands_path.mkdir(parents=True, exist_ok=True)
    path = config.mcp_commands_path / filename
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("Wrote %s command to %s", payload.get("type", "unknown"), path)
    return path


def send_command(command: Dict, config: Optional[BanterConfig] = None) -> Dict:
    """Queue an arbitrary command for the editor under a fresh id."""
    config = config or get_config()
    if not config.unity_project_path:
        return {"success": False, "error": "UNITY_PROJECT_PATH not set"}

    command_id = str(uuid.uuid4())
    payload = dict(command)
    payload["id"] = command_id
    payload["timestamp"] = _now_ms()
    try:
        _write_command_file(config, f"{command_id}.json", payload)
    except OSError as exc:
        return {"success": False, "error": str(exc)}
    return {"success": True, "commandId": command_id}


def refresh_assets(asset_path: Optional[str] = None, config: Optional[BanterConfig] = None) -> Dict:
    """Ask the editor to re-import one asset, or everything when no path is given."""
    config = config or get_config()
    if not config.unity_project_path:
        return {"success": False, "error": "UNITY_PROJECT_PATH not set"}

    command = {"type": "refresh", "path": asset_path or None, "timestamp": _now_ms()}
    try:
        _write_command_file(config, "refresh.json", command)
    except OSError as exc:
        return {"success": False, "error": str(exc)}
    return {
        "success": True,
        "message": "Refresh command sent to Unity",
        "path": asset_path or "all assets",
    }


def request_state_export(config: BanterConfig, filename: str) -> None:
    command = {
        "type": "export-state",
        "stateType": filename.replace(".json", ""),
        "timestamp": _now_ms(),
    }
    try:
        _write_command_file(config, "export-state.json", command)
    except OSError as exc:
        logger.warning("Could not request %s export: %s", filename, exc)


def _matches_filter(item, needle: str) -> bool:
    if not isinstance(item, dict):
        return False
    name = str(item.get("name") or "").lower()
    item_type = str(item.get("type") or "").lower()
    return needle in name or needle in item_type


def read_state_file(config: BanterConfig, filename: str, filter_text: Optional[str] = None) -> Dict:
    path = config.mcp_state_path / filename
    if not path.exists():
        request_state_export(config, filename)
        time.sleep(EXPORT_RETRY_DELAY)
        if not path.exists():
            return {
                "success": False,
                "error": f"State file not found: {filename}. Unity may need to export project state.",
                "source": str(path),
            }

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return {"success": False, "error": f"Error reading {filename}: {exc}", "source": str(path)}

    if filter_text and isinstance(data, list):
        needle = filter_text.lower()
        data = [item for item in data if _matches_filter(item, needle)]

    return {"success": True, "data": data, "source": str(path)}


def query_project_state(
    query: str, filter_text: Optional[str] = None, config: Optional[BanterConfig] = None
) -> Dict:
    """Read one exported project snapshot, or all of them for ``query='all'``."""
    config = config or get_config()
    if not config.has_unity_extension:
        return {"success": False, "error": BRIDGE_MISSING}

    if query in STATE_FILES:
        return read_state_file(config, STATE_FILES[query], filter_text)

    if query == "all":
        data = {}
        for filename in STATE_FILES.values():
            file_result = read_state_file(config, filename)
            key = filename.replace(".json", "").replace("-", "_")
            data[key] = file_result["data"] if file_result["success"] else {"error": file_result["error"]}
        return {"success": True, "data": data}

    valid = ", ".join(list(STATE_FILES) + ["all"])
    return {"success": False, "error": f"Unknown query type: {query}. Valid options: {valid}"}


def _status_result(status: Dict, asset_path: Optional[str]) -> Optional[Dict]:
    if asset_path:
        assets = status.get("assets")
        for asset in assets if isinstance(assets, list) else []:
            if not isinstance(asset, dict):
                continue
            if asset_path in str(asset.get("path", "")):
                has_errors = bool(asset.get("hasErrors"))
                return {
                    "success": not has_errors,
                    "imported": True,
                    "errors": asset.get("errors") or [],
                    "warnings": asset.get("warnings") or [],
                    "assetPath": asset.get("path"),
                    "message": "Asset imported with errors" if has_errors else "Asset imported successfully",
                }
        return None

    has_errors = bool(status.get("hasErrors"))
    errors = status.get("errors") or []
    if not isinstance(errors, list):
        errors = [errors]
    return {
        "success": not has_errors,
        "imported": bool(status.get("completed")),
        "errors": errors,
        "warnings": status.get("warnings") or [],
        "message": (
            f"Import completed with {len(errors)} errors" if has_errors
            else "Import completed successfully"
        ),
    }


def _read_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None


def _malformed(filename: str) -> Dict:
    return {
        "success": False,
        "imported": False,
        "errors": [f"{filename} is not a JSON object"],
        "message": "Error checking import status",
    }


def check_import_status(
    asset_path: Optional[str] = None,
    wait_for_import: bool = True,
    timeout_ms: int = 10000,
    config: Optional[BanterConfig] = None,
) -> Dict:
    """Report whether the editor has imported an asset (or the last batch)."""
    config = config or get_config()

    if not config.has_unity_extension:
        if asset_path:
            exists = (config.assets_path / asset_path).exists()
            return {
                "success": exists,
                "imported": exists,
                "message": (
                    "Asset file exists (cannot verify Unity import without MCP Bridge)"
                    if exists else "Asset file not found"
                ),
                "assetPath": asset_path,
            }
        return {
            "success": False,
            "imported": False,
            "message": "Unity MCP Bridge not detected. Cannot verify import status.",
        }

    status_path = config.mcp_state_path / IMPORT_STATUS_FILE
    try:
        if not wait_for_import:
            status = _read_json(status_path)
            if status is None:
                return {"success": False, "imported": False, "message": "No import status available"}
            if not isinstance(status, dict):
                return _malformed(IMPORT_STATUS_FILE)
            return {
                "success": not status.get("hasErrors"),
                "imported": bool(status.get("completed")),
                "errors": status.get("errors") or [],
                "warnings": status.get("warnings") or [],
                "message": status.get("message") or "Status retrieved",
            }

        deadline = time.monotonic() + timeout_ms / 1000.0
        while time.monotonic() < deadline:
            status = _read_json(status_path)
            if status is not None and not isinstance(status, dict):
                return _malformed(IMPORT_STATUS_FILE)
            timestamp = status.get("timestamp") if status else None
            if isinstance(timestamp, (int, float)) and _now_ms() - timestamp < IMPORT_STATUS_MAX_AGE_MS:
                result = _status_result(status, asset_path)
                if result is not None:
                    return result
            time.sleep(IMPORT_POLL_INTERVAL)
    except (OSError, ValueError) as exc:
        return {
            "success": False,
            "imported": False,
            "errors": [str(exc)],
            "message": "Error checking import status",
        }

    logger.warning("Timed out after %dms waiting for %s", timeout_ms, status_path)
    return {
        "success": False,
        "imported": False,
        "message": f"Timeout waiting for import status ({timeout_ms}ms)",
        "assetPath": asset_path,
    }


def get_console_logs(level: str = "all", limit: int = 50, config: Optional[BanterConfig] = None) -> Dict:
    """Return the newest editor console entries, optionally filtered by level."""
    config = config or get_config()
    log_path = config.mcp_state_path / CONSOLE_LOG_FILE
    if not log_path.exists():
        return {
            "success": False,
            "error": "Console log file not found. Is Unity running with BanterMCPBridge?",
            "logs": [],
        }

    try:
        data = json.loads(log_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return {"success": False, "error": str(exc), "logs": []}

    logs = (data.get("logs") or []) if isinstance(data, dict) else None
    if not isinstance(logs, list):
        return {
            "success": False,
            "error": f"Malformed {CONSOLE_LOG_FILE}: expected an object with a 'logs' list",
            "logs": [],
        }
    logs = [entry for entry in logs if isinstance(entry, dict)]
    if level and level != "all":
        logs = [entry for entry in logs if entry.get("level") == level]
    logs = logs[-(limit or 50):]
    return {"success": True, "count": len(logs), "logs": logs}


__all__ = [
    "send_command",
    "refresh_assets",
    "request_state_export",
    "read_state_file",
    "query_project_state",
    "check_import_status",
    "get_console_logs",
]
