"""
Linear snapshot history.

Entries form one list with a cursor: ``entries[position]`` is the state the
store currently shows. Committing drops everything after the cursor.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

from trackeditor.utils.logger import logger

from .config import UNDO_CONFIG


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    description: str
    state: Any


class UndoManager:
    def __init__(self, initial_state: Any, max_depth: int = UNDO_CONFIG.max_depth):
        self.max_depth = max(1, max_depth)
        self.entries: list[HistoryEntry] = [HistoryEntry("Initial state", initial_state)]
        self.position = 0

    @property
    def current(self) -> Any:
        return self.entries[self.position].state

    @property
    def can_undo(self) -> bool:
        return self.position > 0

    @property
    def can_redo(self) -> bool:
        return self.position < len(self.entries) - 1

    @property
    def undo_description(self) -> Optional[str]:
        """Description of the change that undo would revert."""
        return self.entries[self.position].description if self.can_undo else None

    @property
    def redo_description(self) -> Optional[str]:
        return self.entries[self.position + 1].description if self.can_redo else None

    def __len__(self) -> int:
        """Number of undoable steps held (the baseline entry is not counted)."""
        return len(self.entries) - 1

    def commit(self, state: Any, description: str) -> None:
        del self.entries[self.position + 1:]
        self.entries.append(HistoryEntry(description, state))
        # Oldest entries fall off; the first kept entry becomes the baseline
        overflow = len(self.entries) - (self.max_depth + 1)
        if overflow > 0:
            del self.entries[:overflow]
        self.position = len(self.entries) - 1
        logger.debug(f"History commit: {description}")

    def undo(self) -> Optional[Any]:
        if not self.can_undo:
            logger.debug("Nothing to undo")
            return None
        description = self.entries[self.position].description
        self.position -= 1
        logger.info(f"Undo: {description}")
        return self.current

    def redo(self) -> Optional[Any]:
        if not self.can_redo:
            logger.debug("Nothing to redo")
            return None
        self.position += 1
        logger.info(f"Redo: {self.entries[self.position].description}")
        return self.current

    def reset(self, state: Any) -> None:
        """Collapse history to a single, non-undoable entry."""
        self.entries = [HistoryEntry("Initial state", state)]
        self.position = 0
        logger.debug("Undo/Redo history cleared")
