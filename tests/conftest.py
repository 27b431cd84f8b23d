"""pytest fixtures for branchform tests."""

import pytest
import tempfile
from pathlib import Path

from branchform.core.models import (
    Choice,
    ChoiceStep,
    ConclusionStep,
    FormGraph,
    QuantityChoice,
    QuantityStep,
    TextStep,
)


@pytest.fixture
def temp_dir():
    """temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_graph():
    """Q1(text) -> Q2(text) -> C1(choice: yes -> Q3, no -> nothing)."""
    return FormGraph(
        root_step_id="Q1",
        steps={
            "Q1": TextStep(id="Q1", question="Your name?", next_step_id="Q2"),
            "Q2": TextStep(id="Q2", question="Your email?", next_step_id="C1"),
            "C1": ChoiceStep(
                id="C1",
                question="Want a call back?",
                choices=[
                    Choice(id="yes", label="Yes", next_step_id="Q3"),
                    Choice(id="no", label="No"),
                ],
            ),
            "Q3": TextStep(id="Q3", question="Phone number?"),
        },
    )


@pytest.fixture
def linear_graph():
    """A -> B -> C -> D, all text, D ends the form."""
    steps = {}
    ids = ["A", "B", "C", "D"]
    for i, sid in enumerate(ids):
        next_id = ids[i + 1] if i + 1 < len(ids) else None
        steps[sid] = TextStep(id=sid, question=f"question {sid}", next_step_id=next_id)
    return FormGraph(root_step_id="A", steps=steps)


@pytest.fixture
def shop_graph():
    """text -> quantity -> choice(back to quantity / finish) -> conclusion.

    the choice loops back, so the graph has a cycle.
    """
    return FormGraph(
        root_step_id="name",
        steps={
            "name": TextStep(id="name", question="Name?", next_step_id="cart"),
            "cart": QuantityStep(
                id="cart",
                question="Pick items",
                quantity_choices=[
                    QuantityChoice(id="tea", label="Tea", price=4, limit=3),
                    QuantityChoice(id="none", label="No thanks", is_no_thanks=True),
                ],
                next_step_id="more",
            ),
            "more": ChoiceStep(
                id="more",
                question="Anything else?",
                choices=[
                    Choice(id="again", label="Add more", next_step_id="cart"),
                    Choice(id="done", label="Done", next_step_id="end"),
                ],
            ),
            "end": ConclusionStep(id="end", question="Thanks!"),
        },
    )
