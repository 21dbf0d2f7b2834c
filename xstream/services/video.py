"""Submit / poll / download protocol for long-running video generation."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from ..errors import BackendError, CredentialRejected, EmptyResultError, StudioError
from ..types import ImageFile, VideoArtifact, VideoJob
from ..utils.files import atomic_write, sha256_hex
from .generation import GenerationJobClient, VideoSession

logger = logging.getLogger(__name__)

# Body fragment the backend returns when the selected credential cannot see the job.
VEO_API_KEY_ERROR_MESSAGE = "Requested entity was not found."
DEFAULT_POLL_INTERVAL = 10.0

Sleep = Callable[[float], Awaitable[None]]


class PollerState(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    RESOLVED = "resolved"
    FAILED = "failed"


class AsyncVideoJobPoller:
    """Drives one video job from submission to a resolved download reference.

    The poller never fetches the video itself during polling; ``download``
    performs the authenticated fetch and reclassifies the backend's
    "entity not found" answer as ``CredentialRejected``. There is no
    cancellation primitive: abandoning the coroutine simply stops observing
    the server-side job.
    """

    def __init__(
        self,
        client: GenerationJobClient,
        *,
        model: str,
        output_dir: str | Path,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._model = model
        self._output_dir = Path(output_dir)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._sleep = sleep
        self._session: Optional[VideoSession] = None
        self.state = PollerState.IDLE
        self.job: Optional[VideoJob] = None
        self.poll_count = 0

    async def submit(self, character_image: ImageFile, motion: str) -> VideoJob:
        """Issue the generation request; the job is always observed by polling."""
        self.state = PollerState.SUBMITTED
        self.poll_count = 0
        try:
            self._session = self._client.open_video_session()
            self.job = await self._session.submit(character_image, motion, self._model)
        except StudioError:
            self.state = PollerState.FAILED
            raise
        self.state = PollerState.POLLING
        logger.info("Video job submitted: %s", self.job.name)
        return self.job

    async def wait(self) -> str:
        """Poll until the job is done and return its download reference."""
        if self.state is not PollerState.POLLING or self._session is None or self.job is None:
            raise RuntimeError("wait() requires a submitted job.")

        try:
            while not self.job.done:
                if self._max_poll_attempts is not None and self.poll_count >= self._max_poll_attempts:
                    raise BackendError(
                        f"Video generation did not finish after {self.poll_count} status checks."
                    )
                await self._sleep(self._poll_interval)
                self.job = await self._session.refresh(self.job)
                self.poll_count += 1
                logger.info("Video job %s poll #%d done=%s", self.job.name, self.poll_count, self.job.done)

            if not self.job.download_ref:
                raise EmptyResultError("Video generation failed to produce a download link.")
        except StudioError:
            self.state = PollerState.FAILED
            raise

        self.state = PollerState.RESOLVED
        return self.job.download_ref

    async def run(self, character_image: ImageFile, motion: str) -> str:
        """Submit and poll in one call."""
        await self.submit(character_image, motion)
        return await self.wait()

    async def download(self, download_ref: str, source_image: ImageFile) -> VideoArtifact:
        """Materialize the resolved reference as a local video file."""
        session = self._session or self._client.open_video_session()
        result = await session.download(download_ref)
        if not result.ok:
            self.state = PollerState.FAILED
            body = result.text
            if VEO_API_KEY_ERROR_MESSAGE in body:
                raise CredentialRejected("API key is invalid. Please select a valid key.")
            raise BackendError(f"Failed to download video: {result.reason} - {body}")

        digest = sha256_hex(result.content)
        target = self._output_dir / f"{digest}.mp4"
        await asyncio.to_thread(atomic_write, target, result.content)
        return VideoArtifact(
            local_path=str(target),
            source_image_ref=source_image.data_url,
            mime_type=_content_type(result.headers),
            sha256=digest,
        )


def _content_type(headers: Dict[str, str]) -> str:
    for key, value in headers.items():
        if key.lower() == "content-type" and value:
            return value.split(";")[0].strip()
    return "video/mp4"
