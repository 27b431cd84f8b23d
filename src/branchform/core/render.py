"""text renderings of a form: ascii tree, plain outline, mermaid.

all of them go through walk_tree, so loops render as a "continues to"
marker instead of recursing.
"""

from __future__ import annotations

from typing import Optional

from rich.text import Text

from .models import FormGraph, Step, StepType
from .traversal import count_descendants, walk_tree


# --- configuration ---

LABEL_LENGTH = 40

TYPE_STYLES = {
    StepType.TEXT: "white",
    StepType.CHOICE: "bold blue",
    StepType.QUANTITY: "magenta",
    StepType.CONCLUSION: "bold green",
}

TYPE_TAGS = {
    StepType.TEXT: "text",
    StepType.CHOICE: "choice",
    StepType.QUANTITY: "qty",
    StepType.CONCLUSION: "end",
}


def _short(text: str, max_len: int = LABEL_LENGTH) -> str:
    first_line = text.split("\n")[0].strip()
    if len(first_line) <= max_len:
        return first_line
    return first_line[:max_len - 3] + "..."


def step_label(step: Step) -> str:
    """generate a short label for a step."""
    return f"[{TYPE_TAGS[step.type]}] {_short(step.question)}"


def outline_lines(graph: FormGraph) -> list[str]:
    """the form as indented plain-text lines, one per rendered step."""
    lines = []
    for entry in walk_tree(graph):
        step = graph.steps[entry.step_id]
        prefix = "    " * entry.depth
        branch = f"({entry.branch_label}) " if entry.branch_label else ""
        if entry.revisit:
            lines.append(f"{prefix}{branch}-> continues to: {_short(step.question, 25)}")
        else:
            lines.append(f"{prefix}{branch}{step_label(step)} <{step.id}>")
    return lines


def export_outline(graph: FormGraph) -> str:
    """export form as plain text outline."""
    return "\n".join(outline_lines(graph))


def render_tree(graph: FormGraph, selected_id: Optional[str] = None) -> Text:
    """render the form as styled ascii for a terminal."""
    if not graph.root_step_id:
        return Text("(empty form)", style="dim")

    text = Text()
    for entry in walk_tree(graph):
        step = graph.steps[entry.step_id]
        indent = "│ " * max(entry.depth - 1, 0) + ("└─" if entry.depth else "")
        text.append(indent, style="dim")
        if entry.branch_label:
            text.append(f"{entry.branch_label} ", style="italic cyan")
        if entry.revisit:
            text.append(f"↺ {_short(step.question, 25)}\n", style="dim")
            continue
        style = TYPE_STYLES[step.type]
        if step.id == selected_id:
            style = f"reverse {style}"
        text.append(step_label(step), style=style)
        descendants = count_descendants(graph, step.id)
        if descendants:
            text.append(f"  (+{descendants})", style="dim")
        text.append("\n")
    return text


def export_mermaid(graph: FormGraph) -> str:
    """export form as mermaid flowchart."""
    if not graph.root_step_id:
        return "flowchart TD\n  empty[No steps]"

    lines = ["flowchart TD"]

    def sanitize(text: str) -> str:
        # escape quotes and limit length
        return text[:30].replace('"', "'").replace("\n", " ")

    def node_id(step_id: str) -> str:
        return step_id.replace("-", "_")

    for sid, step in graph.steps.items():
        label = f"{TYPE_TAGS[step.type]}: {sanitize(step.question)}"
        if step.type == StepType.CHOICE:
            lines.append(f'  {node_id(sid)}{{"{label}"}}')
        else:
            lines.append(f'  {node_id(sid)}["{label}"]')

    for sid, step in graph.steps.items():
        if step.type == StepType.CHOICE:
            for choice in step.choices:
                if choice.next_step_id:
                    lines.append(
                        f'  {node_id(sid)} -->|"{sanitize(choice.label)}"| {node_id(choice.next_step_id)}'
                    )
        else:
            for next_id in step.outgoing_ids():
                lines.append(f"  {node_id(sid)} --> {node_id(next_id)}")

    return "\n".join(lines)
