"""cycle-safe walks over a form graph.

every walk threads a visited set, so loops and shared branches are
visited once and never recursed into again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from .models import FormGraph, StepType


# --- configuration ---

MAX_PATH_LENGTH = 50  # hard stop for respondent paths


def visit(graph: FormGraph, start_id: str, visited: set[str]) -> set[str]:
    """walk forward from start_id, adding every newly reached id to visited.

    ids already in visited are neither added again nor descended into.
    the start id itself is added. returns visited for chaining.
    """
    if start_id not in graph.steps or start_id in visited:
        return visited

    stack = [start_id]
    visited.add(start_id)
    while stack:
        step = graph.steps[stack.pop()]
        # reversed so choices are explored in their listed order
        for next_id in reversed(step.outgoing_ids()):
            if next_id in visited or next_id not in graph.steps:
                continue
            visited.add(next_id)
            stack.append(next_id)
    return visited


def count_descendants(graph: FormGraph, start_id: str) -> int:
    """number of distinct steps reachable from start_id, excluding it."""
    if start_id not in graph.steps:
        return 0
    reached = visit(graph, start_id, set())
    # a loop back to the start does not make it its own descendant
    return len(reached) - 1


def reachable_ids(graph: FormGraph) -> set[str]:
    """ids reachable from the root, root included."""
    if not graph.root_step_id:
        return set()
    return visit(graph, graph.root_step_id, set())


def orphan_ids(graph: FormGraph) -> list[str]:
    """steps still in the map but unreachable from the root."""
    reached = reachable_ids(graph)
    return [sid for sid in graph.steps if sid not in reached]


@dataclass
class TreeEntry:
    """one row of a rendered tree."""

    step_id: str
    depth: int
    branch_label: Optional[str] = None  # choice label leading here
    revisit: bool = False               # already rendered above, not expanded


def walk_tree(graph: FormGraph, start_id: Optional[str] = None) -> Iterator[TreeEntry]:
    """yield steps in depth-first render order.

    a step reached a second time is reported once with revisit=True and
    its subtree is not walked again.
    """
    start_id = start_id or graph.root_step_id
    if not start_id or start_id not in graph.steps:
        return

    rendered: set[str] = set()
    stack: list[TreeEntry] = [TreeEntry(step_id=start_id, depth=0)]
    while stack:
        entry = stack.pop()
        if entry.step_id in rendered:
            entry.revisit = True
            yield entry
            continue
        rendered.add(entry.step_id)
        yield entry

        step = graph.steps[entry.step_id]
        children: list[TreeEntry] = []
        if step.type == StepType.CHOICE:
            for choice in step.choices:
                if choice.next_step_id in graph.steps:
                    children.append(TreeEntry(
                        step_id=choice.next_step_id,
                        depth=entry.depth + 1,
                        branch_label=choice.label,
                    ))
        else:
            for next_id in step.outgoing_ids():
                if next_id in graph.steps:
                    children.append(TreeEntry(step_id=next_id, depth=entry.depth + 1))
        stack.extend(reversed(children))


@dataclass
class PathNode:
    """one stop on a respondent's path through the form."""

    step_id: str
    selected_choice_id: Optional[str] = None
    selected_choice_label: Optional[str] = None


def build_path(
    graph: FormGraph,
    selections: Optional[dict[str, str]] = None,
    max_length: int = MAX_PATH_LENGTH,
) -> list[PathNode]:
    """follow the form from the root as a respondent would.

    selections maps choice step ids to the chosen choice id; unselected or
    unknown selections fall back to the first choice.
    """
    selections = selections or {}
    nodes: list[PathNode] = []
    seen: set[str] = set()
    current = graph.root_step_id

    while current and current in graph.steps and current not in seen:
        seen.add(current)
        step = graph.steps[current]
        node = PathNode(step_id=current)

        if step.type == StepType.CHOICE and step.choices:
            selected = step.get_choice(selections.get(current, "")) or step.choices[0]
            node.selected_choice_id = selected.id
            node.selected_choice_label = selected.label
            current = selected.next_step_id
        elif step.type == StepType.CONCLUSION:
            current = None
        else:
            current = getattr(step, "next_step_id", None)

        nodes.append(node)
        if len(nodes) >= max_length:
            break

    return nodes
