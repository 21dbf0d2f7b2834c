"""Prompt -> content -> iterate assistant with concurrent text streams."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import AsyncIterator, ClassVar, List, Optional, Tuple

from ..errors import InvalidTransitionError
from ..types import DEFAULT_ASPECT_RATIO, CreativeControls, ImageFile
from ..utils.run_logger import summarize_artifact
from .base import BaseWorkflow, Stage

logger = logging.getLogger(__name__)


class CreativeAssistantWorkflow(BaseWorkflow):
    """Draft a detailed prompt, generate an image plus text, then refine the image.

    Content generation awaits the image first, then runs the conversational
    text stream and (when requested and a genre is chosen) the lyrics stream
    side by side. The stage only advances once every task finished; a
    failure in any of them cancels the rest and nothing is committed.
    """

    name = "creative-assistant"
    kind = "Creative Assistant"
    initial_stage = Stage.PROMPT
    loading_messages: ClassVar[Tuple[str, ...]] = (
        "Consulting the digital muse...",
        "Painting with pixels...",
        "Formulating a witty response...",
        "Reticulating splines...",
        "Aligning cosmic energies...",
    )

    def _reset_session(self) -> None:
        super()._reset_session()
        self.topic = ""
        self.source_image: Optional[ImageFile] = None
        self.assets: List[ImageFile] = []
        self.selected_assets: List[ImageFile] = []
        self.controls = CreativeControls()
        self.generate_lyrics = False
        self.detailed_prompt = ""
        self.text_result = ""
        self.lyrics_result = ""

    # Inputs

    @property
    def aspect_ratio_locked(self) -> bool:
        """Attached source images dictate the framing, so the ratio is fixed."""
        return self.source_image is not None

    def attach_source_image(self, image: ImageFile) -> None:
        self.source_image = image
        self.controls = self.controls.updated(aspect_ratio=DEFAULT_ASPECT_RATIO)

    def remove_source_image(self) -> None:
        self.source_image = None

    def update_controls(self, **changes: str) -> CreativeControls:
        ratio = changes.get("aspect_ratio")
        if self.aspect_ratio_locked and ratio is not None and ratio != self.controls.aspect_ratio:
            raise ValueError("Aspect ratio cannot be changed while a source image is attached.")
        self.controls = self.controls.updated(**changes)
        return self.controls

    def randomize_controls(self, rng: Optional[random.Random] = None) -> CreativeControls:
        self.controls = self.controls.randomized(rng)
        return self.controls

    def add_asset(self, image: ImageFile) -> None:
        self.assets.append(image)

    def remove_asset(self, image: ImageFile) -> None:
        self.assets = [asset for asset in self.assets if asset.data != image.data]
        self.selected_assets = [asset for asset in self.selected_assets if asset.data != image.data]

    def toggle_asset(self, image: ImageFile) -> bool:
        """Select or deselect an asset; returns whether it is now selected."""
        if any(asset.data == image.data for asset in self.selected_assets):
            self.selected_assets = [asset for asset in self.selected_assets if asset.data != image.data]
            return False
        if not any(asset.data == image.data for asset in self.assets):
            self.assets.append(image)
        self.selected_assets.append(image)
        return True

    def edit_prompt(self, text: str) -> None:
        self._require_stage(Stage.CONTENT)
        self.detailed_prompt = text

    # Generation

    async def draft_prompt(self, topic: str) -> None:
        """Expand ``topic`` into a detailed prompt and move to ``Content``."""
        if not topic.strip() and self.source_image is None:
            raise InvalidTransitionError("Enter a topic or attach a source image first.")
        self._require_stage(Stage.PROMPT, Stage.CONTENT)
        self.topic = topic
        assets = list(self.selected_assets)
        self.log_prompt("draft", topic)

        async with self._stage("draft", recovery=self.stage, default_message="Failed to generate prompt."):
            if self.source_image is not None:
                prompt = await self._client.draft_prompt_from_image(topic, self.source_image, assets, self.controls)
            else:
                prompt = await self._client.draft_prompt_from_text(topic, assets, self.controls)
            self.detailed_prompt = prompt
            self.stage = Stage.CONTENT
            self.log_response("draft", {"prompt": prompt})

    @property
    def wants_lyrics(self) -> bool:
        return self.generate_lyrics and self.controls.has_genre

    async def generate_content(self, final_prompt: Optional[str] = None) -> None:
        """Generate the image, then stream text (and lyrics) before moving to ``Iterate``."""
        prompt = self.detailed_prompt if final_prompt is None else final_prompt
        if not prompt.strip():
            raise InvalidTransitionError("The prompt is empty.")
        self._require_stage(Stage.CONTENT)
        self.detailed_prompt = prompt
        self.log_prompt("content", prompt)

        async with self._stage("content", recovery=Stage.CONTENT, default_message="An error occurred during content generation."):
            self.text_result = ""
            self.lyrics_result = ""
            image = await self._client.generate_image(
                prompt, self.source_image, list(self.selected_assets), self.controls.aspect_ratio
            )

            streams = [self._collect(self._client.stream_text(self.topic, self.source_image, list(self.selected_assets)), "text_result")]
            if self.wants_lyrics:
                streams.append(self._collect(self._client.stream_lyrics(self.topic or prompt, self.controls.genre), "lyrics_result"))
            await _join_all(streams)

            self.history.reset()
            self._saved_refs.clear()
            self.history.append(image)
            self.stage = Stage.ITERATE
            self.log_response(
                "content",
                {
                    "image": summarize_artifact(image),
                    "text": self.text_result,
                    "lyrics": self.lyrics_result,
                },
            )

    async def iterate(self, instruction: str) -> None:
        """Refine the latest image with a free-text instruction."""
        if not instruction.strip():
            raise InvalidTransitionError("Describe the change to make.")
        self._require_stage(Stage.ITERATE)
        if not self.history.is_at_latest:
            raise InvalidTransitionError("Only the latest image can be iterated on.")
        latest = ImageFile.from_data_url(self.history.latest() or "")
        self.log_prompt("iterate", instruction)

        async with self._stage("iterate", recovery=Stage.ITERATE, default_message="Failed to iterate on the image."):
            image = await self._client.edit_image(instruction, latest, self.controls.aspect_ratio)
            self.history.append(image)
            self.log_response("iterate", summarize_artifact(image))

    # Thumbnail navigation

    def select(self, index: int) -> None:
        self.history.select(index)

    def go_to_latest(self) -> None:
        self.history.go_to_latest()

    def comparison_pair(self) -> Tuple[Optional[str], Optional[str]]:
        return self.history.previous(), self.result

    async def _collect(self, stream: AsyncIterator[str], attribute: str) -> None:
        async for chunk in stream:
            setattr(self, attribute, getattr(self, attribute) + chunk)
        logger.debug("%s stream finished (%d chars)", attribute, len(getattr(self, attribute)))


async def _join_all(coros) -> None:
    """Await every coroutine; the first failure cancels the others and is re-raised."""
    tasks = [asyncio.create_task(coro) for coro in coros]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
