"""Linear undo/redo history over generated artifacts."""

from __future__ import annotations

from typing import Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class ArtifactHistory(Generic[T]):
    """Ordered artifacts plus a cursor; ``cursor == -1`` iff there are none.

    ``append`` discards any redo tail before adding, so history never
    branches. ``undo``/``redo`` only move the cursor and are no-ops at the
    ends.
    """

    def __init__(self) -> None:
        self._items: List[T] = []
        self._cursor = -1

    @property
    def items(self) -> Tuple[T, ...]:
        return tuple(self._items)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._items) - 1

    @property
    def is_at_latest(self) -> bool:
        return self._cursor == len(self._items) - 1

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def append(self, artifact: T) -> None:
        del self._items[self._cursor + 1 :]
        self._items.append(artifact)
        self._cursor = len(self._items) - 1

    def undo(self) -> None:
        if self.can_undo:
            self._cursor -= 1

    def redo(self) -> None:
        if self.can_redo:
            self._cursor += 1

    def go_to_latest(self) -> None:
        self._cursor = len(self._items) - 1

    def select(self, index: int) -> None:
        """Jump straight to ``index`` (thumbnail navigation)."""
        if not 0 <= index < len(self._items):
            raise IndexError(f"history index out of range: {index}")
        self._cursor = index

    def current(self) -> Optional[T]:
        if self._cursor < 0:
            return None
        return self._items[self._cursor]

    def previous(self) -> Optional[T]:
        """The entry immediately before the cursor, if any."""
        if self._cursor < 1:
            return None
        return self._items[self._cursor - 1]

    def latest(self) -> Optional[T]:
        return self._items[-1] if self._items else None

    def reset(self) -> None:
        self._items.clear()
        self._cursor = -1
