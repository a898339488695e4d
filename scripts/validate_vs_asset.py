#!/usr/bin/env python3
"""Validate a Visual Scripting graph stored as JSON or as a Unity .asset file.

Example:
    python scripts/validate_vs_asset.py Assets/Scripts/VisualScripting/GrabToggle.asset
    python scripts/validate_vs_asset.py graph.json --json

Exits with status 1 when the graph has errors.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from banter_vs_mcp.asset import extract_graph_json  # noqa: E402
from banter_vs_mcp.validator import print_validation_report, validate_vs_graph  # noqa: E402


def load_graph_text(path: Path) -> str:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".asset":
        graph_json = extract_graph_json(text)
        if graph_json is None:
            sys.exit(f"No _json payload found in {path}")
        return graph_json
    return text


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("path", type=Path, help="Graph .json or .asset file")
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    args = parser.parse_args()

    if not args.path.exists():
        sys.exit(f"File not found: {args.path}")

    result = validate_vs_graph(load_graph_text(args.path))
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"File: {args.path}")
        print_validation_report(result)

    sys.exit(0 if result["valid"] else 1)


if __name__ == "__main__":
    main()
