"""core data model for branchform.

a form is an arena of steps keyed by id. pointers are plain ids, so
cycles are just repeated keys.
"""

from __future__ import annotations

import copy
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union


# --- configuration ---

FORMS_DIR_NAME = ".branchform"

DEFAULT_TEXT_QUESTION = "Enter your question"
DEFAULT_CHOICE_QUESTION = "Select an option"
DEFAULT_QUANTITY_QUESTION = "Select items and quantities"
DEFAULT_CONCLUSION_QUESTION = "Thank You!"
DEFAULT_THANK_YOU_MESSAGE = (
    "Thank you for completing this form. Please review your answers and submit."
)
DEFAULT_SUBMIT_BUTTON_TEXT = "Submit"


class StepType(Enum):
    TEXT = "text"               # free text answer
    CHOICE = "choice"           # fork, one pointer per option
    QUANTITY = "quantity"       # priced items with counts
    CONCLUSION = "conclusion"   # terminal thank-you screen


# steps that carry a single next_step_id
LINEAR_TYPES = (StepType.TEXT, StepType.QUANTITY)


@dataclass
class InfoPopup:
    """optional help popup attached to a step. opaque to the engine."""

    enabled: bool = False
    header: str = ""
    images: list[str] = field(default_factory=list)
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "header": self.header,
            "images": list(self.images),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, d: dict) -> InfoPopup:
        return cls(
            enabled=d.get("enabled", False),
            header=d.get("header", ""),
            images=list(d.get("images", [])),
            description=d.get("description", ""),
        )


@dataclass
class Choice:
    """one option of a choice step."""

    id: str
    label: str
    next_step_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "nextStepId": self.next_step_id}

    @classmethod
    def from_dict(cls, d: dict) -> Choice:
        return cls(id=d["id"], label=d["label"], next_step_id=d.get("nextStepId"))


@dataclass
class QuantityChoice:
    """one priced item of a quantity step."""

    id: str
    label: str
    price: float = 0
    limit: Optional[int] = None  # None = unlimited
    is_no_thanks: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "price": self.price,
            "limit": self.limit,
            "isNoThanks": self.is_no_thanks,
        }

    @classmethod
    def from_dict(cls, d: dict) -> QuantityChoice:
        return cls(
            id=d["id"],
            label=d["label"],
            price=d.get("price", 0),
            limit=d.get("limit"),
            is_no_thanks=d.get("isNoThanks", False),
        )


@dataclass
class TextStep:
    id: str
    question: str
    placeholder: Optional[str] = None
    next_step_id: Optional[str] = None
    info_popup: Optional[InfoPopup] = None

    type = StepType.TEXT

    def outgoing_ids(self) -> list[str]:
        return [self.next_step_id] if self.next_step_id else []

    def retarget(self, old_id: str, new_id: Optional[str]) -> bool:
        if self.next_step_id == old_id:
            self.next_step_id = new_id
            return True
        return False


@dataclass
class ChoiceStep:
    id: str
    question: str
    choices: list[Choice] = field(default_factory=list)
    info_popup: Optional[InfoPopup] = None

    type = StepType.CHOICE

    def outgoing_ids(self) -> list[str]:
        return [c.next_step_id for c in self.choices if c.next_step_id]

    def retarget(self, old_id: str, new_id: Optional[str]) -> bool:
        changed = False
        for choice in self.choices:
            if choice.next_step_id == old_id:
                choice.next_step_id = new_id
                changed = True
        return changed

    def get_choice(self, choice_id: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


@dataclass
class QuantityStep:
    id: str
    question: str
    quantity_choices: list[QuantityChoice] = field(default_factory=list)
    next_step_id: Optional[str] = None
    info_popup: Optional[InfoPopup] = None

    type = StepType.QUANTITY

    def outgoing_ids(self) -> list[str]:
        return [self.next_step_id] if self.next_step_id else []

    def retarget(self, old_id: str, new_id: Optional[str]) -> bool:
        if self.next_step_id == old_id:
            self.next_step_id = new_id
            return True
        return False


@dataclass
class ConclusionStep:
    id: str
    question: str
    thank_you_message: str = DEFAULT_THANK_YOU_MESSAGE
    submit_button_text: str = DEFAULT_SUBMIT_BUTTON_TEXT
    info_popup: Optional[InfoPopup] = None

    type = StepType.CONCLUSION

    def outgoing_ids(self) -> list[str]:
        return []

    def retarget(self, old_id: str, new_id: Optional[str]) -> bool:
        return False


Step = Union[TextStep, ChoiceStep, QuantityStep, ConclusionStep]


def new_step(step_type: StepType, step_id: Optional[str] = None) -> Step:
    """build a step with the editor's default content."""
    step_id = step_id or generate_id("step")
    if step_type == StepType.TEXT:
        return TextStep(id=step_id, question=DEFAULT_TEXT_QUESTION, placeholder="")
    if step_type == StepType.CHOICE:
        return ChoiceStep(
            id=step_id,
            question=DEFAULT_CHOICE_QUESTION,
            choices=[
                Choice(id=generate_id("choice"), label=f"Option {i}")
                for i in range(1, 4)
            ],
        )
    if step_type == StepType.QUANTITY:
        return QuantityStep(
            id=step_id,
            question=DEFAULT_QUANTITY_QUESTION,
            quantity_choices=[
                QuantityChoice(id=generate_id("qc"), label="Item 1", price=10),
                QuantityChoice(id=generate_id("qc"), label="Item 2", price=15),
                QuantityChoice(
                    id=generate_id("qc"), label="No thanks", price=0, is_no_thanks=True
                ),
            ],
        )
    if step_type == StepType.CONCLUSION:
        return ConclusionStep(id=step_id, question=DEFAULT_CONCLUSION_QUESTION)
    raise ValueError(f"unknown step type: {step_type}")


# --- serialization ---

def step_to_dict(step: Step) -> dict:
    """serialize a step to the camelCase transport shape."""
    d: dict = {"id": step.id, "type": step.type.value, "question": step.question}
    if step.type == StepType.TEXT:
        if step.placeholder is not None:
            d["placeholder"] = step.placeholder
        d["nextStepId"] = step.next_step_id
    elif step.type == StepType.CHOICE:
        d["choices"] = [c.to_dict() for c in step.choices]
    elif step.type == StepType.QUANTITY:
        d["quantityChoices"] = [qc.to_dict() for qc in step.quantity_choices]
        d["nextStepId"] = step.next_step_id
    else:
        d["thankYouMessage"] = step.thank_you_message
        d["submitButtonText"] = step.submit_button_text
    if step.info_popup is not None:
        d["infoPopup"] = step.info_popup.to_dict()
    return d


def step_from_dict(d: dict) -> Step:
    """deserialize a step from the transport shape."""
    step_type = StepType(d["type"])
    popup = InfoPopup.from_dict(d["infoPopup"]) if d.get("infoPopup") else None
    if step_type == StepType.TEXT:
        return TextStep(
            id=d["id"],
            question=d["question"],
            placeholder=d.get("placeholder"),
            next_step_id=d.get("nextStepId"),
            info_popup=popup,
        )
    if step_type == StepType.CHOICE:
        return ChoiceStep(
            id=d["id"],
            question=d["question"],
            choices=[Choice.from_dict(c) for c in d.get("choices", [])],
            info_popup=popup,
        )
    if step_type == StepType.QUANTITY:
        return QuantityStep(
            id=d["id"],
            question=d["question"],
            quantity_choices=[
                QuantityChoice.from_dict(qc) for qc in d.get("quantityChoices", [])
            ],
            next_step_id=d.get("nextStepId"),
            info_popup=popup,
        )
    return ConclusionStep(
        id=d["id"],
        question=d["question"],
        thank_you_message=d.get("thankYouMessage", DEFAULT_THANK_YOU_MESSAGE),
        submit_button_text=d.get("submitButtonText", DEFAULT_SUBMIT_BUTTON_TEXT),
        info_popup=popup,
    )


@dataclass
class FormGraph:
    """the whole editable form."""

    root_step_id: Optional[str] = None
    steps: dict[str, Step] = field(default_factory=dict)

    def get(self, step_id: Optional[str]) -> Optional[Step]:
        if step_id is None:
            return None
        return self.steps.get(step_id)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self.steps

    def __len__(self) -> int:
        return len(self.steps)

    def copy(self) -> FormGraph:
        """structurally independent copy; nothing nested is shared."""
        return FormGraph(
            root_step_id=self.root_step_id,
            steps={sid: copy.deepcopy(s) for sid, s in self.steps.items()},
        )

    def retarget_all(self, old_id: str, new_id: Optional[str]) -> list[str]:
        """rewrite every pointer to old_id in place. returns ids of changed steps."""
        return [sid for sid, s in self.steps.items() if s.retarget(old_id, new_id)]

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        return {
            "rootStepId": self.root_step_id,
            "steps": {sid: step_to_dict(s) for sid, s in self.steps.items()},
        }

    @classmethod
    def from_dict(cls, d: dict) -> FormGraph:
        """deserialize from dict."""
        return cls(
            root_step_id=d.get("rootStepId"),
            steps={sid: step_from_dict(sd) for sid, sd in d.get("steps", {}).items()},
        )

    def save(self, path: Path) -> None:
        """save form to json file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> FormGraph:
        """load form from json file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))


def generate_id(prefix: str = "step") -> str:
    """generate a short unique id."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


# --- form storage ---

def get_forms_dir() -> Path:
    """get the default form storage directory."""
    forms_dir = Path.home() / FORMS_DIR_NAME
    forms_dir.mkdir(parents=True, exist_ok=True)
    return forms_dir


def list_saved_forms(forms_dir: Optional[Path] = None) -> list[dict]:
    """list saved forms with metadata.

    returns list of dicts with: name, path, step_count, modified_at
    """
    forms_dir = forms_dir or get_forms_dir()
    forms = []

    for path in forms_dir.glob("*.json"):
        if path.name.startswith("."):
            continue
        try:
            with open(path) as f:
                data = json.load(f)
            forms.append({
                "name": path.stem,
                "path": str(path),
                "step_count": len(data.get("steps", {})),
                "modified_at": datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            })
        except (json.JSONDecodeError, AttributeError):
            # skip invalid files
            continue

    forms.sort(key=lambda x: x["modified_at"], reverse=True)
    return forms
