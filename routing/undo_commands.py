# routing/undo_commands.py
from typing import List, Any, Dict

from core.topology import TopologyStore


class UndoStack:
    """Manages a history of commands for undo/redo functionality."""

    def __init__(self, limit: int = 50):
        self.stack: List[Any] = []
        self.index: int = -1  # Points to the last executed command
        self.limit = limit

    def push(self, command: Any) -> None:
        """Adds a new command to the stack and executes its redo action."""
        self.stack = self.stack[:self.index + 1]
        self.stack.append(command)
        command.redo()
        self.index += 1

        if self.limit and len(self.stack) > self.limit:
            overflow = len(self.stack) - self.limit
            del self.stack[:overflow]
            self.index -= overflow

    def undo(self) -> bool:
        if self.index >= 0:
            self.stack[self.index].undo()
            self.index -= 1
            return True
        return False

    def redo(self) -> bool:
        if self.index + 1 < len(self.stack):
            self.index += 1
            self.stack[self.index].redo()
            return True
        return False

    def can_undo(self) -> bool:
        return self.index >= 0

    def can_redo(self) -> bool:
        return self.index + 1 < len(self.stack)

    def clear(self) -> None:
        self.stack.clear()
        self.index = -1

    def __len__(self) -> int:
        return len(self.stack)


class TopologyEditCommand:
    """
    A committed wire edit, stored as full before/after snapshots of the store.

    Pushing the command re-applies the "after" snapshot, which is a no-op for
    an edit that has already been made.
    """

    def __init__(self, store: TopologyStore, before: Dict[str, Any], after: Dict[str, Any],
                 text: str = "Edit wires"):
        self.store = store
        self.before = before
        self.after = after
        self.text = text

    def undo(self):
        self.store.restore(self.before)

    def redo(self):
        self.store.restore(self.after)
