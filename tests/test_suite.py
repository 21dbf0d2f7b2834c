"""Tests for the top-level router: tool switching, hand-off and notifications."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from fakes import FakeBackend, FakeSelector, fake_image

from xstream import CreativeSuite
from xstream.config import SuiteConfig
from xstream.suite import Tool
from xstream.types import LibraryEntry
from xstream.workflows.animator import CharacterAnimatorWorkflow, CredentialStatus
from xstream.workflows.background import BackgroundRemoverWorkflow
from xstream.workflows.base import Stage
from xstream.workflows.swap import FaceSwapWorkflow


class CreativeSuiteTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        tmp = Path(self._tmp.name)
        self.config = SuiteConfig(runs_dir=str(tmp / "runs"), videos_dir=str(tmp / "videos"))
        self.backend = FakeBackend(images=[fake_image("swap-result"), fake_image("second")])
        self.suite = CreativeSuite(self.config, backend_factory=lambda: self.backend)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_save_reaches_library_with_notification(self) -> None:
        workflow = self.suite.open(Tool.FACE_SWAP)
        self.assertIsInstance(workflow, FaceSwapWorkflow)
        await workflow.generate(fake_image("source"), fake_image("face"))
        workflow.save()
        workflow.save()

        self.assertEqual(len(self.suite.library), 1)
        self.assertEqual([n.message for n in self.suite.notifications], ["Saved to Library!", "Already saved!"])

    async def test_library_entry_seeds_another_tool(self) -> None:
        face_swap = self.suite.open(Tool.FACE_SWAP)
        await face_swap.generate(fake_image("source"), fake_image("face"))
        face_swap.save()
        entry = self.suite.library.list()[0]

        remover = self.suite.use_in_tool(entry, Tool.BACKGROUND_REMOVER)

        self.assertIsInstance(remover, BackgroundRemoverWorkflow)
        self.assertIs(self.suite.workflow, remover)
        self.assertEqual(remover.view_stage, Stage.INPUT)
        self.assertEqual(remover.seed_image.data_url, entry.result_ref)

        await remover.remove_background()
        self.assertEqual(remover.stage, Stage.EDITING)
        self.assertEqual(remover.original.data_url, entry.result_ref)

    def test_undecodable_entry_opens_tool_empty(self) -> None:
        entry = LibraryEntry(kind="Face Swap", result_ref="blob:not-a-data-url")
        workflow = self.suite.use_in_tool(entry, "clothing-swap")

        self.assertIsNone(workflow.seed_image)
        self.assertEqual(self.suite.current_tool, Tool.CLOTHING_SWAP)
        self.assertEqual(self.suite.notifications[-1].message, "Error loading image from library.")

    def test_corrupt_payload_opens_tool_empty(self) -> None:
        entry = LibraryEntry(kind="Face Swap", result_ref="data:image/png;base64,@@not-base64@@")
        workflow = self.suite.use_in_tool(entry, Tool.FACE_SWAP)

        self.assertIsInstance(workflow, FaceSwapWorkflow)
        self.assertIsNone(workflow.seed_image)
        self.assertEqual([n.message for n in self.suite.notifications], ["Error loading image from library."])

    def test_hand_off_only_to_image_input_tools(self) -> None:
        entry = LibraryEntry(kind="Face Swap", result_ref=fake_image("x").data_url)
        with self.assertRaises(ValueError):
            self.suite.use_in_tool(entry, Tool.CREATIVE_ASSISTANT)

    def test_menu_and_library_have_no_workflow(self) -> None:
        self.assertIsNone(self.suite.open(Tool.LIBRARY))
        self.assertEqual(self.suite.current_tool, Tool.LIBRARY)
        self.suite.open(Tool.FACE_SWAP)
        self.suite.back_to_menu()
        self.assertEqual(self.suite.current_tool, Tool.MENU)
        self.assertIsNone(self.suite.workflow)

    def test_notifications_can_be_dismissed(self) -> None:
        first = self.suite.notify("one")
        second = self.suite.notify("two")
        self.suite.dismiss_notification(first.id)
        self.assertEqual(self.suite.notifications, [second])

    def test_each_open_starts_a_fresh_session(self) -> None:
        first = self.suite.open(Tool.FACE_SWAP)
        second = self.suite.open(Tool.FACE_SWAP)
        self.assertIsNot(first, second)
        self.assertNotEqual(first.session_id, second.session_id)

    async def test_animator_receives_selector_and_video_backend(self) -> None:
        video_backend = FakeBackend(
            operations=[
                {
                    "name": "operations/fake-1",
                    "done": True,
                    "response": {"generatedVideos": [{"video": {"uri": "https://files/V"}}]},
                }
            ]
        )

        async def instant(_seconds: float) -> None:
            return None

        suite = CreativeSuite(
            self.config,
            backend_factory=lambda: self.backend,
            video_backend_factory=lambda: video_backend,
            credential_selector=FakeSelector(selected=True),
            poll_sleep=instant,
        )
        animator = suite.open(Tool.CHARACTER_ANIMATOR)
        self.assertIsInstance(animator, CharacterAnimatorWorkflow)
        self.assertEqual(await animator.check_credential(), CredentialStatus.SELECTED)

        await animator.animate(fake_image("hero"), "waves")

        self.assertIsNone(animator.error)
        self.assertEqual(suite.library.list()[0].kind, "Character Animation")
        self.assertEqual(suite.notifications[-1].message, "Saved to Library!")
        self.assertNotIn("submit_video", self.backend.methods())

    async def test_mock_backend_runs_without_credentials(self) -> None:
        suite = CreativeSuite(self.config)
        workflow = suite.open(Tool.CREATIVE_ASSISTANT)
        await workflow.draft_prompt("a lighthouse in a storm")
        await workflow.generate_content()
        self.assertIsNone(workflow.error)
        self.assertEqual(workflow.stage, Stage.ITERATE)
        self.assertTrue(workflow.text_result)


if __name__ == "__main__":
    unittest.main()
