from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional, TypeVar

from .models import TaskWithCategory

T = TypeVar("T")


def move_item(items: Sequence[T], source_index: int, target_index: int) -> list[T]:
    """Return a copy of ``items`` with the element at ``source_index`` moved to ``target_index``."""
    size = len(items)
    if not 0 <= source_index < size:
        raise IndexError(f"source index {source_index} out of range for {size} items")
    if not 0 <= target_index < size:
        raise IndexError(f"target index {target_index} out of range for {size} items")

    moved = list(items)
    if source_index == target_index:
        return moved
    item = moved.pop(source_index)
    moved.insert(target_index, item)
    return moved


def reordered_ids(displayed: Sequence[TaskWithCategory], source_index: int, target_index: int) -> list[str]:
    return [t.id for t in move_item(displayed, source_index, target_index)]


@dataclass
class DragSession:
    """Remembers what was picked up between drag start and drop."""

    task_id: Optional[str] = None
    source_index: int = -1

    @property
    def active(self) -> bool:
        return self.task_id is not None and self.source_index >= 0

    def start(self, task_id: str, index: int) -> None:
        self.task_id = task_id
        self.source_index = index

    def end(self) -> None:
        self.task_id = None
        self.source_index = -1

    def drop(self, displayed: Sequence[TaskWithCategory], target_index: int) -> Optional[list[str]]:
        """
        Finish the gesture. Returns the id sequence to submit, or None when
        there is nothing to do (no drag in progress, or dropped in place).
        """
        try:
            if not self.active or self.source_index == target_index:
                return None
            return reordered_ids(displayed, self.source_index, target_index)
        finally:
            self.end()
