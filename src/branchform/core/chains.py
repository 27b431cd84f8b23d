"""linear chains: maximal non-branching runs of steps.

a chain is the unit a drag gesture reorders. only its text/quantity
members move; a trailing choice or conclusion stays put.
"""

from __future__ import annotations

from typing import Optional

from .models import LINEAR_TYPES, FormGraph, StepType


def get_linear_chain(
    graph: FormGraph,
    start_id: str,
    visited: Optional[set[str]] = None,
) -> list[str]:
    """ordered ids of the straight-line run beginning at start_id.

    follows next_step_id while the current step is text or quantity. the
    step that ends the run (a choice, a conclusion, or a step with no next)
    is included. stops without including the next id when that id is in
    visited or already in the chain. visited is only read.
    """
    if start_id not in graph.steps:
        return []

    blocked = visited or set()
    chain = [start_id]
    in_chain = {start_id}
    current = graph.steps[start_id]

    while current.type in LINEAR_TYPES:
        next_id = current.next_step_id
        if not next_id or next_id not in graph.steps:
            break
        if next_id in blocked or next_id in in_chain:
            break
        chain.append(next_id)
        in_chain.add(next_id)
        current = graph.steps[next_id]

    return chain


def is_draggable(graph: FormGraph, step_id: str) -> bool:
    step = graph.get(step_id)
    return step is not None and step.type not in (StepType.CHOICE, StepType.CONCLUSION)


def draggable_ids(graph: FormGraph, chain: list[str]) -> list[str]:
    """chain members that can be moved by dragging."""
    return [sid for sid in chain if is_draggable(graph, sid)]


def list_chains(graph: FormGraph) -> list[list[str]]:
    """decompose the reachable graph into chains in render order.

    each choice branch starts a new chain. one visited set is shared, so a
    step belongs to exactly one chain even when branches merge or loop.
    """
    if not graph.root_step_id or graph.root_step_id not in graph.steps:
        return []

    chains: list[list[str]] = []
    visited: set[str] = set()
    pending = [graph.root_step_id]

    while pending:
        start_id = pending.pop()
        if start_id in visited or start_id not in graph.steps:
            continue
        chain = get_linear_chain(graph, start_id, visited)
        visited.update(chain)
        chains.append(chain)

        tail = graph.steps[chain[-1]]
        if tail.type == StepType.CHOICE:
            branch_ids = [c.next_step_id for c in tail.choices if c.next_step_id]
            pending.extend(reversed(branch_ids))

    return chains
