"""Background removal followed by a replacement background."""

from __future__ import annotations

import asyncio
from typing import ClassVar, Optional, Tuple

from ..errors import InvalidTransitionError
from ..types import ImageFile, LibraryEntry
from ..utils.images import apply_green_screen
from ..utils.run_logger import summarize_artifact
from .base import BaseWorkflow, Stage

CUTOUT_KIND = "Foreground Cutout"


class BackgroundRemoverWorkflow(BaseWorkflow):
    """Input -> Editing (cutout ready) -> Result (composited).

    Failures while compositing fall back to ``Editing`` so the cutout is kept;
    only a failed removal returns to ``Input``.
    """

    name = "background-remover"
    kind = "Background Edit"
    loading_messages: ClassVar[Tuple[str, ...]] = (
        "Finding the edges...",
        "Isolating the subject...",
        "Creating a clean cutout...",
        "This may take a moment...",
    )

    def _reset_session(self) -> None:
        super()._reset_session()
        self.seed_image: Optional[ImageFile] = None
        self.foreground: Optional[str] = None
        self.background_prompt = ""
        self.is_cutout_saved = False

    def seed(self, image: ImageFile) -> None:
        self.start_over()
        self.seed_image = image

    async def remove_background(self, image: Optional[ImageFile] = None) -> None:
        image = image if image is not None else self.seed_image
        if image is None:
            raise InvalidTransitionError("Background removal requires an image.")
        self._require_stage(Stage.INPUT)

        self.history.reset()
        self._saved_refs.clear()
        self.is_cutout_saved = False
        self.original = image
        self.log_prompt("remove", "Isolate the main subject and remove the background.")

        async with self._stage("remove", recovery=Stage.INPUT, default_message="An unknown error occurred."):
            cutout = await self._client.remove_background(image)
            self.foreground = cutout
            self.stage = Stage.EDITING
            self.log_response("remove", summarize_artifact(cutout))

    async def generate_background(self, prompt: str) -> None:
        """Composite the cutout onto a background generated from ``prompt``."""
        foreground = self._require_foreground()
        if not prompt.strip():
            raise InvalidTransitionError("Describe the background to generate.")
        self.background_prompt = prompt
        self.log_prompt("generate-background", prompt)

        async with self._stage("generate-background", recovery=Stage.EDITING, default_message="Failed to generate background."):
            self.loading_message = "Generating new background..."
            result = await self._client.composite_generated_background(foreground, prompt)
            self._show_result("generate-background", result)

    async def upload_background(self, background: ImageFile) -> None:
        """Composite the cutout onto a user supplied background."""
        foreground = self._require_foreground()
        self.log_prompt("upload-background", "Composite the cutout onto the uploaded background.")

        async with self._stage("upload-background", recovery=Stage.EDITING, default_message="Failed to composite images."):
            self.loading_message = "Compositing images..."
            result = await self._client.composite_uploaded_background(foreground, background)
            self._show_result("upload-background", result)

    async def apply_green_screen(self) -> None:
        """Fill the transparent background with solid green, locally."""
        foreground = self._require_foreground()
        self.log_prompt("green-screen", "Apply a #00FF00 background.")

        async with self._stage("green-screen", recovery=Stage.EDITING, default_message="Failed to apply green screen."):
            self.loading_message = "Applying green screen..."
            result = await asyncio.to_thread(apply_green_screen, foreground)
            self._show_result("green-screen", result.data_url)

    def save_cutout(self) -> bool:
        """Save the bare cutout, tracked separately from the final result."""
        if self.foreground is None:
            return False
        if self.is_cutout_saved:
            self._notify("Cutout already saved!")
            return False
        self._on_creation_complete(LibraryEntry(kind=CUTOUT_KIND, result_ref=self.foreground))
        self.is_cutout_saved = True
        return True

    def _require_foreground(self) -> ImageFile:
        self._require_stage(Stage.EDITING)
        if self.foreground is None:
            raise InvalidTransitionError("Remove the background first.")
        # Cutouts are always composited as PNG so transparency survives.
        return ImageFile(data=ImageFile.from_data_url(self.foreground).data, mime_type="image/png")

    def _show_result(self, step: str, result: str) -> None:
        self.history.reset()
        self._saved_refs.clear()
        self.history.append(result)
        self.stage = Stage.RESULT
        self.log_response(step, summarize_artifact(result))
