"""per-step edit sessions with revert.

edits go straight to the live graph. the manager only remembers what a
step looked like when it was selected, so the host can throw the edits
away.
"""

from __future__ import annotations

import copy
import logging
from typing import Optional

from .models import FormGraph, Step

logger = logging.getLogger(__name__)


class SnapshotManager:
    """selection state plus one baseline snapshot per step."""

    def __init__(self) -> None:
        self.selected_step_id: Optional[str] = None
        self._snapshots: dict[str, Step] = {}

    def select(self, graph: FormGraph, step_id: Optional[str]) -> None:
        """select a step, capturing its baseline on a selection change.

        re-selecting the step that is already selected keeps the existing
        baseline. selecting None just deselects; snapshots are kept.
        """
        if step_id is not None and step_id != self.selected_step_id:
            step = graph.get(step_id)
            if step is not None:
                self._snapshots[step_id] = copy.deepcopy(step)
        self.selected_step_id = step_id

    def commit(self) -> None:
        """finish editing. the snapshot is left behind, stale."""
        self.selected_step_id = None

    def has_snapshot(self, step_id: str) -> bool:
        return step_id in self._snapshots

    def snapshot_for(self, step_id: str) -> Optional[Step]:
        """a copy of the baseline captured for step_id."""
        snapshot = self._snapshots.get(step_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def revert(self, graph: FormGraph, step_id: str) -> FormGraph:
        """restore step_id to its baseline and clear the selection.

        returns the input graph when there is no baseline or the step has
        been deleted since it was captured.
        """
        self.selected_step_id = None
        snapshot = self._snapshots.pop(step_id, None)
        if snapshot is None:
            return graph
        if step_id not in graph.steps:
            logger.debug(f"revert: step {step_id} no longer exists")
            return graph

        result = graph.copy()
        restored = copy.deepcopy(snapshot)
        # targets deleted after the snapshot was taken must not come back
        for next_id in restored.outgoing_ids():
            if next_id not in result.steps:
                restored.retarget(next_id, None)
        result.steps[step_id] = restored
        return result

    def forget(self, step_id: str) -> None:
        """drop the baseline for a deleted step."""
        self._snapshots.pop(step_id, None)
        if self.selected_step_id == step_id:
            self.selected_step_id = None

    def clear(self) -> None:
        self.selected_step_id = None
        self._snapshots.clear()
