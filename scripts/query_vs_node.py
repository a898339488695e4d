#!/usr/bin/env python3
"""Quickly look up Visual Scripting node metadata (full type, ports, notes).

Example:
    python scripts/query_vs_node.py --node OnGrab
    python scripts/query_vs_node.py --keyword collision
    python scripts/query_vs_node.py --category Player

Accepts short names ("OnGrab"), full types
("Banter.VisualScripting.OnGrab") and close misspellings.
"""

from __future__ import annotations

import argparse
import difflib
import sys
from pathlib import Path
from typing import Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from banter_vs_mcp import catalogue  # noqa: E402


def resolve_query(query: str, registry: catalogue.Registry) -> Optional[catalogue.NodeTypeDescriptor]:
    entry = catalogue.get_node_spec(query, registry)
    if entry:
        return entry

    q_lower = query.lower()
    lowered = {name.lower(): node for name, node in registry.by_short_name.items()}
    lowered.update({name.lower(): node for name, node in registry.by_full_type.items()})
    if q_lower in lowered:
        return lowered[q_lower]

    status, detail = catalogue.classify_node_type(query, registry)
    if status == catalogue.STATUS_WRONG_NAMESPACE:
        return catalogue.get_node_spec(detail, registry)

    # Fuzzy suggestions
    matches = difflib.get_close_matches(q_lower, list(lowered), n=1, cutoff=0.6)
    if matches:
        return lowered[matches[0]]
    return None


def print_metadata(entry: catalogue.NodeTypeDescriptor) -> None:
    print(f"Name      : {entry.short_name}")
    print(f"Full type : {entry.full_type}")
    print(f"Category  : {entry.category}")
    if entry.description:
        print(f"About     : {entry.description}")
    if entry.is_event_node:
        print("Event node: requires 'coroutine: false'")
    if entry.requires_target_default:
        print("Member    : defaultValues must contain 'target: null'")
    print("Inputs    :")
    for port in entry.inputs:
        print(f"  - {port.name} ({port.kind}{', ' + port.value_type if port.value_type else ''})")
    print("Outputs   :")
    for port in entry.outputs:
        print(f"  - {port.name} ({port.kind}{', ' + port.value_type if port.value_type else ''})")
    if entry.notes:
        print("Notes:")
        for note in entry.notes:
            print(f"  - {note}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--node", help="Short name or fully-qualified type")
    group.add_argument("--keyword", help="Search names and descriptions")
    group.add_argument("--category", help="List every node in a category")
    args = parser.parse_args()

    registry = catalogue.load_registry()

    if args.keyword or args.category:
        if args.keyword:
            nodes = catalogue.find_nodes_by_keyword(args.keyword, limit=50, registry=registry)
        else:
            nodes = catalogue.list_nodes(args.category, registry)
        if not nodes:
            sys.exit("No matching nodes.")
        for node in nodes:
            print(f"{node.short_name:<28} {node.category:<10} {node.full_type}")
        return

    entry = resolve_query(args.node, registry)
    if not entry:
        sys.exit(f"Node '{args.node}' not found. Try --keyword to search.")
    if entry.short_name != args.node and entry.full_type != args.node:
        print(f"(closest match for '{args.node}')")
    print_metadata(entry)


if __name__ == "__main__":
    main()
