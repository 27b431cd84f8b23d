"""pydantic schema for the form transport shape.

used at the edges: loading files and accepting graphs over http. the
engine itself works on the dataclasses in models.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .models import FormGraph
from .traversal import orphan_ids


class SchemaError(ValueError):
    """a form document does not match the transport shape."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class InfoPopupSchema(BaseModel):
    enabled: bool = False
    header: str = ""
    images: list[str] = []
    description: str = ""


class ChoiceSchema(BaseModel):
    id: str
    label: str
    nextStepId: Optional[str] = None


class QuantityChoiceSchema(BaseModel):
    id: str
    label: str
    price: float = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)
    isNoThanks: bool = False


class _StepBase(BaseModel):
    id: str
    question: str
    infoPopup: Optional[InfoPopupSchema] = None


class TextStepSchema(_StepBase):
    type: Literal["text"]
    placeholder: Optional[str] = None
    nextStepId: Optional[str] = None


class ChoiceStepSchema(_StepBase):
    type: Literal["choice"]
    choices: list[ChoiceSchema] = Field(min_length=2)


class QuantityStepSchema(_StepBase):
    type: Literal["quantity"]
    quantityChoices: list[QuantityChoiceSchema] = Field(min_length=1)
    nextStepId: Optional[str] = None


class ConclusionStepSchema(_StepBase):
    type: Literal["conclusion"]
    thankYouMessage: Optional[str] = None
    submitButtonText: Optional[str] = None


StepSchema = Annotated[
    Union[TextStepSchema, ChoiceStepSchema, QuantityStepSchema, ConclusionStepSchema],
    Field(discriminator="type"),
]


class FormGraphSchema(BaseModel):
    rootStepId: Optional[str] = None
    steps: dict[str, StepSchema]


def parse_graph(data: dict) -> FormGraph:
    """validate a transport document and build a FormGraph.

    raises SchemaError when the shape is wrong or the graph breaks a
    structural invariant.
    """
    try:
        parsed = FormGraphSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"invalid form graph: {e.error_count()} error(s)", e.errors()) from e

    problems = integrity_problems(parsed)
    if problems:
        raise SchemaError(problems[0], problems)

    return FormGraph.from_dict(parsed.model_dump(exclude_none=True))


def integrity_problems(parsed: FormGraphSchema) -> list[str]:
    """structural invariants the schema alone cannot express."""
    problems = []
    if (parsed.rootStepId is None) != (not parsed.steps):
        problems.append("rootStepId must be null exactly when steps is empty")
    if parsed.rootStepId is not None and parsed.rootStepId not in parsed.steps:
        problems.append(f"rootStepId {parsed.rootStepId} is not a step")

    for key, step in parsed.steps.items():
        if step.id != key:
            problems.append(f"step key {key} does not match id {step.id}")
        if isinstance(step, ChoiceStepSchema):
            targets = [c.nextStepId for c in step.choices]
        elif isinstance(step, (TextStepSchema, QuantityStepSchema)):
            targets = [step.nextStepId]
        else:
            targets = []
        for target in targets:
            if target is not None and target not in parsed.steps:
                problems.append(f"step {key} points to missing step {target}")
    return problems


def validate_graph(graph: FormGraph) -> list[str]:
    """problems and warnings for an in-memory graph. empty means clean.

    orphans are reported as warnings; they are legal but unreachable.
    """
    try:
        parsed = FormGraphSchema.model_validate(graph.to_dict())
    except ValidationError as e:
        return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
    problems = integrity_problems(parsed)
    problems.extend(f"orphan step: {sid}" for sid in orphan_ids(graph))
    return problems
