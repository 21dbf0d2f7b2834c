"""Image-to-video character animation behind a user-selected credential."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import ClassVar, Optional, Tuple

from ..config import SuiteConfig
from ..errors import CredentialRejected, InvalidTransitionError
from ..services.base import CredentialSelector
from ..services.generation import GenerationJobClient
from ..services.video import AsyncVideoJobPoller, Sleep
from ..types import ImageFile, LibraryEntry, VideoArtifact
from .base import BaseWorkflow, Stage

logger = logging.getLogger(__name__)


class CredentialStatus(str, Enum):
    CHECKING = "checking"
    NOT_SELECTED = "not-selected"
    SELECTED = "selected"


class CharacterAnimatorWorkflow(BaseWorkflow):
    """Input (image + motion) -> Loading (submit, poll, download) -> Result.

    Finished animations are published to the library without waiting for a
    save action. A download rejected for credential reasons flips the
    credential status back to ``not-selected`` so the user is asked again.
    """

    name = "character-animator"
    kind = "Character Animation"
    loading_messages: ClassVar[Tuple[str, ...]] = (
        "Preparing character for animation... this can take a few minutes.",
        "Polling for video result...",
    )

    def __init__(
        self,
        client: GenerationJobClient,
        *,
        config: Optional[SuiteConfig] = None,
        credential_selector: Optional[CredentialSelector] = None,
        sleep: Optional[Sleep] = None,
        **kwargs,
    ) -> None:
        self.config = config or SuiteConfig()
        self._selector = credential_selector
        self._sleep = sleep or asyncio.sleep
        self.credential_status = CredentialStatus.CHECKING
        super().__init__(client, **kwargs)

    def _reset_session(self) -> None:
        super()._reset_session()
        self.motion = ""
        self.video: Optional[VideoArtifact] = None
        self.poller: Optional[AsyncVideoJobPoller] = None

    async def check_credential(self) -> CredentialStatus:
        """Ask the host whether a billing-enabled credential was already chosen."""
        if self._selector is None:
            logger.warning("No credential selector available; video credential treated as not selected.")
            self.credential_status = CredentialStatus.NOT_SELECTED
            return self.credential_status
        has_key = await asyncio.to_thread(self._selector.has_selected_key)
        self.credential_status = CredentialStatus.SELECTED if has_key else CredentialStatus.NOT_SELECTED
        logger.info("Video credential status: %s", self.credential_status.value)
        return self.credential_status

    async def select_credential(self) -> CredentialStatus:
        """Open the host's key picker and assume the user picked one."""
        if self._selector is None:
            logger.warning("No credential selector available; cannot open the key picker.")
            return self.credential_status
        await asyncio.to_thread(self._selector.open_select_key)
        self.credential_status = CredentialStatus.SELECTED
        return self.credential_status

    async def animate(self, image: Optional[ImageFile], motion: str) -> None:
        if self.credential_status is not CredentialStatus.SELECTED:
            raise InvalidTransitionError("Select a video API key before animating.")
        if image is None or not motion.strip():
            raise InvalidTransitionError("Character animation requires an image and a motion description.")
        self._require_stage(Stage.INPUT, Stage.RESULT)

        self.history.reset()
        self._saved_refs.clear()
        self.video = None
        self.original = image
        self.motion = motion
        self.log_prompt("animate", motion)

        async with self._stage("animate", recovery=Stage.INPUT, default_message="An unknown error occurred during animation."):
            try:
                self.poller = self._build_poller()
                download_ref = await self.poller.run(image, motion)
                self.loading_message = self.loading_messages[1]
                video = await self.poller.download(download_ref, image)
            except CredentialRejected:
                self.credential_status = CredentialStatus.NOT_SELECTED
                raise

            self.video = video
            self.history.append(video.uri)
            self.stage = Stage.RESULT
            self.log_response(
                "animate",
                {"job": download_ref, "path": video.local_path, "sha256": video.sha256, "polls": self.poller.poll_count},
            )
            self.save()

    def _build_poller(self) -> AsyncVideoJobPoller:
        return AsyncVideoJobPoller(
            self._client,
            model=self.config.video_model,
            output_dir=self.config.videos_dir,
            poll_interval=self.config.video_poll_interval,
            max_poll_attempts=self.config.video_max_poll_attempts,
            sleep=self._sleep,
        )

    def _library_entry(self, result_ref: str) -> LibraryEntry:
        if self.original is None:
            raise InvalidTransitionError("There is no character image to save.")
        return LibraryEntry(kind=self.kind, result_ref=self.original.data_url, video_ref=result_ref)
