"""Top-level router tying the tools, the shared library and notifications together."""

from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Type

from .config import SuiteConfig
from .errors import LocalIOError
from .library import SessionLibrary
from .services.base import CredentialSelector, GenerationBackend
from .services.gemini import GeminiClient
from .services.generation import GenerationJobClient
from .services.video import Sleep
from .types import ImageFile, LibraryEntry
from .utils.run_logger import RunLogger
from .workflows.animator import CharacterAnimatorWorkflow
from .workflows.assistant import CreativeAssistantWorkflow
from .workflows.background import BackgroundRemoverWorkflow
from .workflows.base import BaseWorkflow
from .workflows.swap import ClothingSwapWorkflow, FaceSwapWorkflow

logger = logging.getLogger(__name__)

SAVED_MESSAGE = "Saved to Library!"
LIBRARY_LOAD_ERROR_MESSAGE = "Error loading image from library."


class Tool(str, Enum):
    MENU = "menu"
    CREATIVE_ASSISTANT = "creative-assistant"
    FACE_SWAP = "face-swap"
    CLOTHING_SWAP = "clothing-swap"
    BACKGROUND_REMOVER = "background-remover"
    CHARACTER_ANIMATOR = "character-animator"
    LIBRARY = "library"


# Tools that accept a library image as their starting input.
HANDOFF_TOOLS = (Tool.FACE_SWAP, Tool.CLOTHING_SWAP, Tool.BACKGROUND_REMOVER)

_WORKFLOWS: Dict[Tool, Type[BaseWorkflow]] = {
    Tool.CREATIVE_ASSISTANT: CreativeAssistantWorkflow,
    Tool.FACE_SWAP: FaceSwapWorkflow,
    Tool.CLOTHING_SWAP: ClothingSwapWorkflow,
    Tool.BACKGROUND_REMOVER: BackgroundRemoverWorkflow,
    Tool.CHARACTER_ANIMATOR: CharacterAnimatorWorkflow,
}


@dataclass(frozen=True, slots=True)
class Notification:
    id: int
    message: str


class CreativeSuite:
    """Application session: one active tool at a time plus the shared library."""

    def __init__(
        self,
        config: SuiteConfig | None = None,
        *,
        backend_factory: Optional[Callable[[], GenerationBackend]] = None,
        video_backend_factory: Optional[Callable[[], GenerationBackend]] = None,
        credential_selector: Optional[CredentialSelector] = None,
        poll_sleep: Optional[Sleep] = None,
    ) -> None:
        self.config = config or SuiteConfig.from_env()
        self.logger = RunLogger(base_dir=self.config.runs_dir)
        self.library = SessionLibrary()
        self.notifications: List[Notification] = []
        self._notification_ids = itertools.count(1)
        self._credential_selector = credential_selector
        self._poll_sleep = poll_sleep

        # The backend is only constructed on first use, so a missing key surfaces as a stage error.
        self.client = GenerationJobClient(
            backend_factory or (lambda: GeminiClient.from_config(self.config)),
            video_factory=video_backend_factory or (lambda: GeminiClient.from_config(self.config, video=True)),
            config=self.config,
        )
        self.current_tool = Tool.MENU
        self.workflow: Optional[BaseWorkflow] = None

    # Notifications

    def notify(self, message: str) -> Notification:
        notification = Notification(id=next(self._notification_ids), message=message)
        self.notifications.append(notification)
        logger.info("Notification #%d: %s", notification.id, message)
        return notification

    def dismiss_notification(self, notification_id: int) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]

    # Routing

    def open(self, tool: Tool | str, seed: Optional[ImageFile] = None) -> Optional[BaseWorkflow]:
        """Switch to ``tool`` with a fresh session, optionally pre-filled with ``seed``."""
        tool = Tool(tool)
        self.current_tool = tool
        workflow_cls = _WORKFLOWS.get(tool)
        if workflow_cls is None:
            self.workflow = None
            return None
        return self._start(tool, workflow_cls, seed)

    def _start(self, tool: Tool, workflow_cls: Type[BaseWorkflow], seed: Optional[ImageFile]) -> BaseWorkflow:
        kwargs = dict(
            session_id=self._new_session_id(tool),
            logger=self.logger,
            on_creation_complete=self._handle_creation_complete,
            notify=self.notify,
        )
        if workflow_cls is CharacterAnimatorWorkflow:
            kwargs.update(config=self.config, credential_selector=self._credential_selector, sleep=self._poll_sleep)
        self.workflow = workflow_cls(self.client, **kwargs)
        if seed is not None:
            self.workflow.seed(seed)
        return self.workflow

    def back_to_menu(self) -> None:
        self.current_tool = Tool.MENU
        self.workflow = None

    def use_in_tool(self, entry: LibraryEntry, tool: Tool | str) -> BaseWorkflow:
        """Open ``tool`` seeded with a saved image, as though freshly uploaded."""
        tool = Tool(tool)
        if tool not in HANDOFF_TOOLS:
            raise ValueError(f"{tool.value} does not accept library images.")
        try:
            seed: Optional[ImageFile] = ImageFile.from_data_url(entry.result_ref)
        except LocalIOError:
            logger.warning("Could not decode library entry %s for %s", entry.kind, tool.value)
            self.notify(LIBRARY_LOAD_ERROR_MESSAGE)
            seed = None
        self.current_tool = tool
        return self._start(tool, _WORKFLOWS[tool], seed)

    def _handle_creation_complete(self, entry: LibraryEntry) -> None:
        self.library.save(entry)
        self.notify(SAVED_MESSAGE)

    @staticmethod
    def _new_session_id(tool: Tool) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"{stamp}-{tool.value}-{uuid.uuid4().hex[:6]}"
