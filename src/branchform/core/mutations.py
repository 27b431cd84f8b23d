"""structural edits on a form graph.

every function takes a graph and returns a graph. the input is never
modified. when an edit targets a missing step or would break an
invariant, the input graph itself is returned, so `new is old` tells the
caller nothing changed.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any, Optional

from .models import (
    LINEAR_TYPES,
    Choice,
    FormGraph,
    InfoPopup,
    QuantityChoice,
    Step,
    StepType,
    generate_id,
    new_step,
)

logger = logging.getLogger(__name__)


# --- configuration ---

MIN_CHOICES = 2
MIN_QUANTITY_CHOICES = 1

# fields update_step never touches
_IMMUTABLE_FIELDS = {"id", "type"}

# fields that may not be set to None
_REQUIRED_FIELDS = {"question", "choices", "quantity_choices", "thank_you_message", "submit_button_text"}


def _fresh_step_id(graph: FormGraph) -> str:
    step_id = generate_id("step")
    while step_id in graph.steps:
        step_id = generate_id("step")
    return step_id


def create_first_step(graph: FormGraph, step_type: StepType) -> tuple[FormGraph, Optional[str]]:
    """start an empty form with a root step."""
    if graph.steps:
        return graph, None
    step = new_step(step_type, _fresh_step_id(graph))
    return FormGraph(root_step_id=step.id, steps={step.id: step}), step.id


def add_step(
    graph: FormGraph,
    parent_id: str,
    step_type: StepType,
    choice_id: Optional[str] = None,
) -> tuple[FormGraph, Optional[str]]:
    """add a default step after parent_id.

    a choice parent wires the choice named by choice_id; a text or quantity
    parent has its next pointer replaced, leaving any previous successor
    unreachable. returns (graph, new_id), or (graph, None) when the parent
    does not exist.
    """
    if parent_id not in graph.steps:
        logger.debug(f"add_step: parent not found: {parent_id}")
        return graph, None

    result = graph.copy()
    step = new_step(step_type, _fresh_step_id(graph))
    result.steps[step.id] = step

    parent = result.steps[parent_id]
    if parent.type == StepType.CHOICE:
        choice = parent.get_choice(choice_id) if choice_id else None
        if choice is not None:
            choice.next_step_id = step.id
        else:
            logger.debug(f"add_step: no choice {choice_id} on {parent_id}, step left unwired")
    elif parent.type in LINEAR_TYPES:
        if parent.next_step_id:
            logger.debug(f"add_step: replacing successor {parent.next_step_id} of {parent_id}")
        parent.next_step_id = step.id

    return result, step.id


def _field_names(step: Step) -> set[str]:
    return {f.name for f in dataclasses.fields(step)}


def _violation(graph: FormGraph, step: Step, touched: set[str]) -> Optional[str]:
    """first invariant the updated fields break inside graph, if any.

    only touched fields are checked, so a step loaded in a bad state can
    still have its other fields edited.
    """
    for name in sorted(touched & _REQUIRED_FIELDS):
        if getattr(step, name) is None:
            return f"{name} cannot be null"
    if "choices" in touched and len(step.choices) < MIN_CHOICES:
        return f"choice step needs at least {MIN_CHOICES} choices"
    if "quantity_choices" in touched:
        if len(step.quantity_choices) < MIN_QUANTITY_CHOICES:
            return f"quantity step needs at least {MIN_QUANTITY_CHOICES} item"
        for qc in step.quantity_choices:
            if qc.price < 0:
                return f"negative price on {qc.id}"
            if qc.limit is not None and qc.limit < 0:
                return f"negative limit on {qc.id}"
    if touched & {"next_step_id", "choices"}:
        for next_id in step.outgoing_ids():
            if next_id not in graph.steps:
                return f"pointer to missing step {next_id}"
    return None


def update_step(graph: FormGraph, step_id: str, **fields: Any) -> FormGraph:
    """shallow-merge fields into a step. id and type are never changed.

    raises TypeError for a field the step's variant does not have.
    """
    step = graph.get(step_id)
    if step is None:
        logger.debug(f"update_step: step not found: {step_id}")
        return graph

    updates = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
    unknown = set(updates) - _field_names(step)
    if unknown:
        raise TypeError(f"{step.type.value} step has no field(s): {', '.join(sorted(unknown))}")
    if not updates:
        return graph

    # values are deep-copied so the result shares nothing with the caller
    merged = dataclasses.replace(copy.deepcopy(step), **copy.deepcopy(updates))
    problem = _violation(graph, merged, set(updates))
    if problem:
        logger.debug(f"update_step rejected for {step_id}: {problem}")
        return graph

    result = graph.copy()
    result.steps[step_id] = merged
    return result


def delete_step(graph: FormGraph, step_id: str) -> FormGraph:
    """remove a step and null every pointer to it. the root is never deleted."""
    if step_id == graph.root_step_id:
        logger.debug("delete_step: refusing to delete root")
        return graph
    if step_id not in graph.steps:
        return graph

    result = graph.copy()
    del result.steps[step_id]
    result.retarget_all(step_id, None)
    return result


# --- choice editing ---

def add_choice(graph: FormGraph, step_id: str, label: Optional[str] = None) -> FormGraph:
    step = graph.get(step_id)
    if step is None or step.type != StepType.CHOICE:
        return graph
    choice = Choice(id=generate_id("choice"), label=label or f"Option {len(step.choices) + 1}")
    return update_step(graph, step_id, choices=step.choices + [choice])


def update_choice(graph: FormGraph, step_id: str, choice_id: str, **fields: Any) -> FormGraph:
    """update label and/or next_step_id of one choice."""
    step = graph.get(step_id)
    if step is None or step.type != StepType.CHOICE or step.get_choice(choice_id) is None:
        return graph
    choices = [
        dataclasses.replace(c, **fields) if c.id == choice_id else c
        for c in step.choices
    ]
    return update_step(graph, step_id, choices=choices)


def delete_choice(graph: FormGraph, step_id: str, choice_id: str) -> FormGraph:
    step = graph.get(step_id)
    if step is None or step.type != StepType.CHOICE:
        return graph
    choices = [c for c in step.choices if c.id != choice_id]
    if len(choices) == len(step.choices):
        return graph
    return update_step(graph, step_id, choices=choices)


# --- quantity item editing ---

def add_quantity_choice(
    graph: FormGraph,
    step_id: str,
    label: Optional[str] = None,
    price: float = 0,
) -> FormGraph:
    step = graph.get(step_id)
    if step is None or step.type != StepType.QUANTITY:
        return graph
    item = QuantityChoice(
        id=generate_id("qc"),
        label=label or f"Item {len(step.quantity_choices) + 1}",
        price=price,
    )
    return update_step(graph, step_id, quantity_choices=step.quantity_choices + [item])


def update_quantity_choice(graph: FormGraph, step_id: str, choice_id: str, **fields: Any) -> FormGraph:
    """update one quantity item.

    marking an item as "no thanks" zeroes its price and clears its limit.
    """
    step = graph.get(step_id)
    if step is None or step.type != StepType.QUANTITY:
        return graph
    if not any(qc.id == choice_id for qc in step.quantity_choices):
        return graph
    if fields.get("is_no_thanks"):
        fields = {**fields, "price": 0, "limit": None}
    items = [
        dataclasses.replace(qc, **fields) if qc.id == choice_id else qc
        for qc in step.quantity_choices
    ]
    return update_step(graph, step_id, quantity_choices=items)


def delete_quantity_choice(graph: FormGraph, step_id: str, choice_id: str) -> FormGraph:
    step = graph.get(step_id)
    if step is None or step.type != StepType.QUANTITY:
        return graph
    items = [qc for qc in step.quantity_choices if qc.id != choice_id]
    if len(items) == len(step.quantity_choices):
        return graph
    return update_step(graph, step_id, quantity_choices=items)


# --- info popup ---

def append_image(graph: FormGraph, step_id: str, object_path: str) -> FormGraph:
    """append an uploaded image reference to the step's info popup."""
    step = graph.get(step_id)
    if step is None:
        return graph
    popup = copy.deepcopy(step.info_popup) if step.info_popup else InfoPopup()
    popup.images.append(object_path)
    return update_step(graph, step_id, info_popup=popup)
