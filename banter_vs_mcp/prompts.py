"""Conversation starters for authoring and debugging graphs, plus the authoring guide."""

from __future__ import annotations

from pathlib import Path
from string import Template
from typing import Optional, Tuple

VS_INSTRUCTIONS_PATH = Path(__file__).resolve().parent / "reference" / "vs_instructions.md"

CREATE_GRAPH_TEMPLATE = Template("""# Creating a Visual Scripting graph for: ${purpose}

## 1. Plan the logic
- Which events start the behaviour?
- Which conditions are checked?
- Which actions run?

## 2. Pick the nodes
- Events: `OnGrab` / `OnRelease` (VR interaction), `OnClick`, `OnCollisionEnter`,
  `Start`, `Update` (sparingly).
- Logic: `If`, `SetVariable` / `GetVariable`, `Greater` / `Less` / `Equal`.
- Actions: `InvokeMember` (methods), `SetMember` / `GetMember` (properties).

Use `list_vs_nodes` and `describe_vs_node` for exact types and port names.

## 3. Declare variables
Graph variables keep state between events: `bool` flags, `float` counters,
`GameObject` references.

## 4. Build it with the tools
1. `generate_vs_graph` with `graph_name`, `nodes`, `connections`, `variables`.
2. Check the attached validation report (or call `validate_vs_graph`).
3. `write_vs_graph` to create the `.asset` file.
4. `check_import_status` to confirm Unity imported it.

## Reminders
- Banter types are flat: `Banter.VisualScripting.OnGrab`.
- Event nodes need `coroutine: false`; the generator adds it.
- There is no GetComponent node; use `InvokeMember`.
- Never hand-write GUIDs.

Shall I generate this graph now?""")

DEBUG_GRAPH_TEMPLATE = Template("""# Debugging a Visual Scripting graph (${symptoms})

| Symptom | Likely cause | Check |
|---------|--------------|-------|
| Nodes missing or red | Fake GUIDs, wrong type names | `validate_vs_graph` |
| "Node script is missing" | Nested namespace such as `Banter.VisualScripting.Events.OnGrab`, or a node that does not exist | `describe_vs_node` |
| Events never fire | Missing `coroutine: false`, missing BanterGrababble / BanterColliderEvents, graph on the wrong object | `query_project_state components` |
| "Port not found" | Wrong port name (`collision` vs `data`, `position` vs `Position`) | `describe_vs_node` |
| SetVariable errors | No name in `defaultValues.name`, no value connected to `input`, wrong kind | `validate_vs_graph` |
| Member nodes do nothing | `defaultValues` without `target: null` | `validate_vs_graph` |

## Steps
1. `get_console_logs level=error` for Unity's own messages.
2. `validate_vs_graph` on the graph JSON (a `.asset` file holds it in `_json`).
3. `check_import_status` after every write.
4. `query_project_state` to see the components on the target object.
5. Shrink the graph to one event and one action, then add nodes back.

Shall I validate your graph and list the concrete problems?""")


def create_vs_graph_messages(purpose: Optional[str] = None) -> Tuple[str, str]:
    """Return the (user, assistant) texts that open a graph authoring session."""
    purpose = purpose or "interactive behaviour"
    return (
        f"I need to create a Visual Scripting graph for: {purpose}",
        CREATE_GRAPH_TEMPLATE.substitute(purpose=purpose),
    )


def debug_vs_graph_messages(symptoms: Optional[str] = None) -> Tuple[str, str]:
    symptoms = symptoms or "not working as expected"
    return (
        f"My Visual Scripting graph is {symptoms}. How do I debug it?",
        DEBUG_GRAPH_TEMPLATE.substitute(symptoms=symptoms),
    )


def vs_instructions() -> str:
    return VS_INSTRUCTIONS_PATH.read_text(encoding="utf-8")


__all__ = [
    "create_vs_graph_messages",
    "debug_vs_graph_messages",
    "vs_instructions",
]
