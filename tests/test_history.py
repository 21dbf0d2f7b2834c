"""Tests for the linear undo/redo history."""

from __future__ import annotations

import random
import unittest

from xstream.history import ArtifactHistory


class ArtifactHistoryTest(unittest.TestCase):
    def test_empty_history(self) -> None:
        history: ArtifactHistory[str] = ArtifactHistory()
        self.assertEqual(history.cursor, -1)
        self.assertIsNone(history.current())
        self.assertFalse(history.can_undo)
        self.assertFalse(history.can_redo)
        history.undo()
        history.redo()
        self.assertEqual(history.cursor, -1)

    def test_append_after_undo_discards_tail(self) -> None:
        history: ArtifactHistory[str] = ArtifactHistory()
        for item in ("A", "B", "C"):
            history.append(item)
        self.assertEqual(history.cursor, 2)

        history.undo()
        history.undo()
        self.assertEqual(history.cursor, 0)
        self.assertEqual(history.current(), "A")

        history.append("D")
        self.assertEqual(history.items, ("A", "D"))
        self.assertEqual(history.cursor, 1)
        self.assertFalse(history.can_redo)

    def test_undo_redo_are_noops_at_the_ends(self) -> None:
        history: ArtifactHistory[str] = ArtifactHistory()
        history.append("A")
        history.append("B")
        history.redo()
        self.assertEqual(history.current(), "B")
        history.undo()
        history.undo()
        self.assertEqual(history.current(), "A")
        self.assertEqual(history.previous(), None)
        history.redo()
        self.assertEqual(history.previous(), "A")

    def test_select_and_go_to_latest(self) -> None:
        history: ArtifactHistory[str] = ArtifactHistory()
        for item in ("A", "B", "C"):
            history.append(item)
        history.select(1)
        self.assertEqual(history.current(), "B")
        self.assertFalse(history.is_at_latest)
        history.go_to_latest()
        self.assertTrue(history.is_at_latest)
        with self.assertRaises(IndexError):
            history.select(3)

    def test_invariants_hold_for_random_sequences(self) -> None:
        rng = random.Random(7)
        history: ArtifactHistory[int] = ArtifactHistory()
        for step in range(500):
            action = rng.choice(("append", "undo", "redo"))
            if action == "append":
                history.append(step)
            elif action == "undo":
                history.undo()
            else:
                history.redo()
            self.assertTrue(-1 <= history.cursor < len(history))
            self.assertEqual(history.can_undo, history.cursor > 0)
            self.assertEqual(history.can_redo, history.cursor < len(history) - 1)
            if action == "append":
                self.assertTrue(history.is_at_latest)

    def test_reset(self) -> None:
        history: ArtifactHistory[str] = ArtifactHistory()
        history.append("A")
        history.reset()
        self.assertEqual(len(history), 0)
        self.assertEqual(history.cursor, -1)


if __name__ == "__main__":
    unittest.main()
