"""drag-reorder of a linear chain.

moving a step inside a chain rewires the chain's internal links, carries
the chain's exit pointer over to the new tail, and re-points everything
that entered the chain through its old head.
"""

from __future__ import annotations

import logging

from .chains import draggable_ids
from .models import LINEAR_TYPES, FormGraph

logger = logging.getLogger(__name__)

_NO_EXIT = object()


def reordered_chain(chain: list[str], draggable: list[str], step_id: str, new_index: int) -> list[str]:
    """the chain order after moving step_id to new_index among the draggables."""
    moved = [sid for sid in draggable if sid != step_id]
    moved.insert(new_index, step_id)
    fixed = [sid for sid in chain if sid not in draggable]
    return moved + fixed


def reorder_chain(
    graph: FormGraph,
    chain: list[str],
    step_id: str,
    new_index: int,
) -> FormGraph:
    """move a draggable step of chain to new_index within the draggable subset.

    returns a new graph, or the input graph unchanged when the move is a
    no-op: a chain member no longer in the graph, fewer than two
    draggables, step_id not draggable, index out of range, or the step
    already sits at new_index.
    """
    # a chain read before a delete may name steps that are gone
    if not chain or any(sid not in graph.steps for sid in chain):
        logger.debug(f"reorder: stale chain {chain}")
        return graph
    draggable = draggable_ids(graph, chain)
    if len(draggable) < 2 or step_id not in draggable:
        return graph
    if not 0 <= new_index < len(draggable):
        logger.debug(f"reorder index out of range: {new_index} (of {len(draggable)})")
        return graph
    if draggable.index(step_id) == new_index:
        return graph

    new_chain = reordered_chain(chain, draggable, step_id, new_index)
    old_entry, new_entry = chain[0], new_chain[0]
    old_tail, new_tail = chain[-1], new_chain[-1]

    # read from the input before anything is rewired
    old_exit = _exit_pointer(graph, old_tail)

    result = graph.copy()

    # every linear step links to its successor, a trailing choice included;
    # skipping that pair would leave the choice unreachable
    for earlier, later in zip(new_chain, new_chain[1:]):
        step = result.steps[earlier]
        if step.type in LINEAR_TYPES:
            step.next_step_id = later

    # tail repair
    if new_tail != old_tail:
        tail_step = result.steps[new_tail]
        if old_exit is not _NO_EXIT and tail_step.type in LINEAR_TYPES:
            tail_step.next_step_id = old_exit

    # entry repair: everything that entered through the old head
    if new_entry != old_entry:
        interior = set(new_chain[:-1])
        for sid, step in result.steps.items():
            if sid in interior:
                continue
            step.retarget(old_entry, new_entry)
        if result.root_step_id == old_entry:
            result.root_step_id = new_entry

    logger.debug(f"reordered chain {chain} -> {new_chain}")
    return result


def move_step(graph: FormGraph, chain: list[str], step_id: str, over_id: str) -> FormGraph:
    """resolve a drop of step_id onto over_id and reorder.

    drag libraries report the id a step was dropped over, not an index.
    """
    draggable = draggable_ids(graph, chain)
    if over_id not in draggable:
        return graph
    return reorder_chain(graph, chain, step_id, draggable.index(over_id))


def _exit_pointer(graph: FormGraph, tail_id: str) -> object:
    """the pointer leaving the chain from its tail, or _NO_EXIT for choice and conclusion tails."""
    tail = graph.steps[tail_id]
    if tail.type not in LINEAR_TYPES:
        return _NO_EXIT
    return tail.next_step_id
