"""List selection state machine used by pickers outside a session."""
from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

PAGE_SIZE = 10


class SelectionState(Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


_MOVES = {
    "up": -1,
    "k": -1,
    "down": 1,
    "j": 1,
}
_CONFIRM_KEYS = frozenset({"enter"})
_CANCEL_KEYS = frozenset({"escape", "q", "ctrl+c"})


class SelectionTable(Generic[T]):
    """Cursor over ``rows`` that ends either confirmed or cancelled.

    Once terminated, further keys are ignored.
    """

    def __init__(self, rows: Sequence[T], page_size: int = PAGE_SIZE) -> None:
        self._rows = list(rows)
        self._page_size = max(1, page_size)
        self._index = 0
        self._state = SelectionState.ACTIVE

    @property
    def rows(self) -> list[T]:
        return self._rows

    @property
    def index(self) -> int:
        return self._index

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state is not SelectionState.ACTIVE

    @property
    def selected(self) -> T | None:
        """The confirmed row, or ``None`` unless the table was confirmed."""
        if self._state is not SelectionState.CONFIRMED:
            return None
        return self._rows[self._index]

    def _move_to(self, index: int) -> None:
        if not self._rows:
            return
        self._index = min(max(index, 0), len(self._rows) - 1)

    def handle_key(self, key: str) -> bool:
        """Apply ``key``; return True if the key changed anything."""
        if self.done:
            return False
        if key in _CANCEL_KEYS:
            self._state = SelectionState.CANCELLED
            return True
        if key in _CONFIRM_KEYS:
            self._state = (
                SelectionState.CONFIRMED if self._rows else SelectionState.CANCELLED
            )
            return True

        before = self._index
        if key in _MOVES:
            self._move_to(self._index + _MOVES[key])
        elif key in ("pageup", "b"):
            self._move_to(self._index - self._page_size)
        elif key in ("pagedown", "f"):
            self._move_to(self._index + self._page_size)
        elif key in ("home", "g"):
            self._move_to(0)
        elif key in ("end", "G"):
            self._move_to(len(self._rows) - 1)
        return self._index != before
