"""Asynchronous facade over the generation backend used by every workflow."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar

from ..config import SuiteConfig
from ..errors import BackendError, EmptyResultError, StudioError
from ..types import CreativeControls, DownloadResult, ImageFile, VideoJob, VideoJobStatus
from ..utils.prompts import load_prompt
from .base import GenerationBackend, Part
from .gemini import extract_inline_image, extract_text, extract_video_uri, operation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
BackendFactory = Callable[[], GenerationBackend]

IMAGE_RESPONSE_CONFIG: Dict[str, Any] = {"responseModalities": ["IMAGE"]}
VIDEO_PARAMETERS: Dict[str, Any] = {"sampleCount": 1, "resolution": "720p", "aspectRatio": "9:16"}
_STREAM_END = object()


class GenerationJobClient:
    """One coroutine per generation kind, each returning an artifact or a text stream.

    Backend calls are blocking, so each one runs in a worker thread and the
    event loop stays free between suspension points. Nothing is retried here;
    failures surface as ``ConfigurationError``, ``EmptyResultError`` or
    ``BackendError``.
    """

    def __init__(
        self,
        factory: BackendFactory,
        *,
        video_factory: Optional[BackendFactory] = None,
        config: Optional[SuiteConfig] = None,
    ) -> None:
        self._factory = factory
        self._video_factory = video_factory or factory
        self._config = config or SuiteConfig()
        self._backend: Optional[GenerationBackend] = None

    def _resolve_backend(self) -> GenerationBackend:
        if self._backend is None:
            self._backend = self._factory()
        return self._backend

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except StudioError:
            raise
        except Exception as exc:
            raise BackendError(str(exc) or exc.__class__.__name__) from exc

    async def _generate_image(self, parts: List[Part], *, empty_message: str, config: Optional[Dict[str, Any]] = None) -> str:
        backend = self._resolve_backend()
        response = await self._call(
            backend.generate_content,
            self._config.image_model,
            parts,
            config=config or IMAGE_RESPONSE_CONFIG,
        )
        image = extract_inline_image(response)
        if image is None:
            raise EmptyResultError(empty_message)
        return image.data_url

    async def _generate_text(self, model: str, parts: List[Part]) -> str:
        backend = self._resolve_backend()
        response = await self._call(backend.generate_content, model, parts)
        text = extract_text(response).strip()
        if not text:
            raise EmptyResultError("No text was generated.")
        return text

    async def _stream(self, parts: List[Part], *, system_instruction: Optional[str] = None) -> AsyncIterator[str]:
        backend = self._resolve_backend()
        chunks: Iterator[str] = await self._call(
            lambda: iter(
                backend.stream_content(self._config.text_model, parts, system_instruction=system_instruction)
            )
        )
        # Pulls and the final close share one lock: a cancelled pull keeps
        # running in its worker thread and the iterator cannot be closed under it.
        lock = threading.Lock()

        def pull() -> Any:
            with lock:
                return next(chunks, _STREAM_END)

        def close() -> None:
            with lock:
                closer = getattr(chunks, "close", None)
                if closer is not None:
                    closer()

        try:
            while True:
                chunk = await self._call(pull)
                if chunk is _STREAM_END:
                    return
                if chunk:
                    yield chunk
        finally:
            asyncio.get_running_loop().run_in_executor(None, close)

    # Prompt drafting

    async def draft_prompt_from_text(
        self,
        topic: str,
        assets: Sequence[ImageFile],
        controls: CreativeControls,
    ) -> str:
        """Turn a short topic into a detailed single-paragraph image prompt."""
        text = load_prompt("draft_from_text", {"topic": topic, "boilerplate": build_boilerplate(controls)})
        if assets:
            text += "\nIncorporate inspiration from the following asset images:\n"
        parts: List[Part] = [{"text": text}]
        parts.extend(asset.to_part() for asset in assets)
        return await self._generate_text(self._config.prompt_model, parts)

    async def draft_prompt_from_image(
        self,
        topic: str,
        source_image: ImageFile,
        assets: Sequence[ImageFile],
        controls: CreativeControls,
    ) -> str:
        """Draft a prompt describing a scene inspired by ``source_image``."""
        text = load_prompt("draft_from_image", {"topic": topic, "boilerplate": build_boilerplate(controls)})
        if assets:
            text += "\nAlso take inspiration from these asset images:"
        parts: List[Part] = [{"text": text}, {"text": "Source Image:"}, source_image.to_part()]
        parts.extend(asset.to_part() for asset in assets)
        return await self._generate_text(self._config.text_model, parts)

    # Image artifacts

    async def generate_image(
        self,
        prompt: str,
        source_image: Optional[ImageFile],
        assets: Sequence[ImageFile],
        aspect_ratio: str,
    ) -> str:
        """Generate an image; a source image, when given, is the primary image being edited."""
        parts: List[Part] = [{"text": prompt}]
        images = [source_image, *assets] if source_image else list(assets)
        parts.extend(image.to_part() for image in images)
        config = dict(IMAGE_RESPONSE_CONFIG)
        if source_image is None:
            config["imageConfig"] = {"aspectRatio": aspect_ratio}
        return await self._generate_image(parts, empty_message="No image was generated.", config=config)

    async def edit_image(self, instruction: str, prior_result: ImageFile, aspect_ratio: str) -> str:
        """Refine a previous result; unrelated asset images are deliberately left out."""
        return await self.generate_image(instruction, prior_result, [], aspect_ratio)

    async def face_swap(self, source_image: ImageFile, face_image: ImageFile) -> str:
        parts = [source_image.to_part(), face_image.to_part(), {"text": load_prompt("face_swap")}]
        return await self._generate_image(parts, empty_message="Face swap failed to generate an image.")

    async def clothing_swap(self, person_image: ImageFile, clothing_image: ImageFile) -> str:
        parts = [person_image.to_part(), clothing_image.to_part(), {"text": load_prompt("clothing_swap")}]
        return await self._generate_image(parts, empty_message="Clothing swap failed to generate an image.")

    async def remove_background(self, image: ImageFile) -> str:
        parts = [image.to_part(), {"text": load_prompt("remove_background")}]
        return await self._generate_image(parts, empty_message="Background removal failed to generate an image.")

    async def composite_generated_background(self, foreground: ImageFile, prompt: str) -> str:
        parts = [foreground.to_part(), {"text": load_prompt("composite_generated", {"prompt": prompt})}]
        return await self._generate_image(parts, empty_message="Background composition failed to generate an image.")

    async def composite_uploaded_background(self, foreground: ImageFile, background: ImageFile) -> str:
        parts = [foreground.to_part(), background.to_part(), {"text": load_prompt("composite_uploaded")}]
        return await self._generate_image(parts, empty_message="Background composition failed to generate an image.")

    # Text streams

    def stream_text(
        self,
        topic: str,
        source_image: Optional[ImageFile],
        assets: Sequence[ImageFile],
    ) -> AsyncIterator[str]:
        """Stream a conversational answer about ``topic``."""
        parts: List[Part] = [{"text": load_prompt("conversational_text", {"topic": topic})}]
        if source_image:
            parts.append(source_image.to_part())
        parts.extend(asset.to_part() for asset in assets)
        return self._stream(parts)

    def stream_lyrics(self, topic: str, genre: str) -> AsyncIterator[str]:
        """Stream song lyrics about ``topic`` in ``genre``."""
        parts: List[Part] = [{"text": load_prompt("lyrics_user", {"topic": topic})}]
        return self._stream(parts, system_instruction=load_prompt("lyrics_system", {"genre": genre}))

    # Video jobs

    def open_video_session(self) -> "VideoSession":
        """Construct a fresh video backend so a newly selected credential applies."""
        return VideoSession(self, self._video_factory())


class VideoSession:
    """Video calls bound to one freshly constructed backend."""

    def __init__(self, client: GenerationJobClient, backend: GenerationBackend) -> None:
        self._client = client
        self._backend = backend

    async def submit(self, image: ImageFile, motion: str, model: str) -> VideoJob:
        operation = await self._client._call(
            self._backend.submit_video, model, motion, image, dict(VIDEO_PARAMETERS)
        )
        return job_from_operation(operation)

    async def refresh(self, job: VideoJob) -> VideoJob:
        operation = await self._client._call(self._backend.get_operation, job.name)
        return job_from_operation(operation, fallback_name=job.name)

    async def download(self, uri: str) -> DownloadResult:
        return await self._client._call(self._backend.download, uri)


def job_from_operation(operation: Dict[str, Any], fallback_name: str = "") -> VideoJob:
    """Translate an operation payload into a ``VideoJob``."""
    message = operation_error(operation)
    if message:
        raise BackendError(message)
    name = str(operation.get("name") or fallback_name)
    if not operation.get("done"):
        return VideoJob(name=name)
    return VideoJob(name=name, status=VideoJobStatus.DONE, download_ref=extract_video_uri(operation))


def build_boilerplate(controls: CreativeControls, include_genre: bool = True) -> str:
    """Render the creative controls as prompt lines."""
    text = load_prompt(
        "controls_boilerplate",
        {
            "artistic_style": controls.artistic_style,
            "lighting": controls.lighting,
            "mood": controls.mood,
            "camera_angle": controls.camera_angle,
        },
    )
    if include_genre and controls.has_genre:
        text += f"\nThe image should be suitable as cover art for the {controls.genre} music genre."
    return text
