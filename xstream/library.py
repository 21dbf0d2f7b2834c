"""Session-scoped collection of saved artifacts."""

from __future__ import annotations

from typing import List, Tuple

from .types import LibraryEntry


class SessionLibrary:
    """Append-only store shared by every workflow for the application session.

    ``save`` appends unconditionally; callers check ``contains`` first to
    keep one entry per artifact.
    """

    def __init__(self) -> None:
        self._entries: List[LibraryEntry] = []

    def save(self, entry: LibraryEntry) -> LibraryEntry:
        self._entries.append(entry)
        return entry

    def list(self) -> Tuple[LibraryEntry, ...]:
        """Entries, most recent first."""
        return tuple(reversed(self._entries))

    def contains(self, result_ref: str) -> bool:
        return any(entry.result_ref == result_ref for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)
