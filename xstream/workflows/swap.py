"""Two-image swap tools: face swap and clothing swap."""

from __future__ import annotations

from typing import ClassVar, Optional, Tuple

from ..errors import InvalidTransitionError
from ..types import ImageFile
from ..utils.run_logger import summarize_artifact
from .base import BaseWorkflow, Stage


class _SwapWorkflow(BaseWorkflow):
    """Input (two images) -> Loading -> Result, with edit/undo/redo on the result."""

    primary_label: ClassVar[str] = "source"
    secondary_label: ClassVar[str] = "reference"
    instruction_summary: ClassVar[str] = ""
    client_method: ClassVar[str] = "face_swap"

    def _reset_session(self) -> None:
        super()._reset_session()
        self.seed_image: Optional[ImageFile] = None

    def seed(self, image: ImageFile) -> None:
        """Pre-fill the primary slot, as if the user had uploaded ``image``."""
        self.start_over()
        self.seed_image = image

    async def generate(self, primary: Optional[ImageFile], secondary: Optional[ImageFile]) -> None:
        """Run the swap; a missing primary image falls back to the seeded library image."""
        if primary is None:
            primary = self.seed_image
        if primary is None or secondary is None:
            raise InvalidTransitionError(
                f"{self.kind} requires both a {self.primary_label} and a {self.secondary_label} image."
            )
        self._require_stage(Stage.INPUT, Stage.RESULT)

        self.history.reset()
        self._saved_refs.clear()
        self.original = primary
        self.log_prompt("generate", self.instruction_summary)

        async with self._stage("generate", recovery=Stage.INPUT, default_message="An unknown error occurred."):
            swap = getattr(self._client, self.client_method)
            result = await swap(primary, secondary)
            self.history.append(result)
            self.stage = Stage.RESULT
            self.log_response("generate", summarize_artifact(result))


class FaceSwapWorkflow(_SwapWorkflow):
    name = "face-swap"
    kind = "Face Swap"
    primary_label = "source"
    secondary_label = "face"
    client_method = "face_swap"
    instruction_summary = "Swap the face from the face image onto the person in the source image."
    loading_messages: ClassVar[Tuple[str, ...]] = (
        "Performing digital cosmetic surgery...",
        "Analyzing facial structures...",
        "Blending pixels seamlessly...",
        "Finding the perfect match...",
    )


class ClothingSwapWorkflow(_SwapWorkflow):
    name = "clothing-swap"
    kind = "Clothing Swap"
    primary_label = "person"
    secondary_label = "clothing"
    client_method = "clothing_swap"
    instruction_summary = "Dress the person in the person image with the clothing from the clothing image."
    loading_messages: ClassVar[Tuple[str, ...]] = (
        "Tailoring the outfit...",
        "Matching fabric and fit...",
        "Adjusting the drape...",
    )
