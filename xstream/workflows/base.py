"""Shared session state and stage handling for every workflow."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable, ClassVar, Optional, Set, Tuple

from ..errors import ConfigurationError, InvalidTransitionError, StudioError
from ..history import ArtifactHistory
from ..services.generation import GenerationJobClient
from ..types import ImageFile, LibraryEntry
from ..utils.run_logger import RunLogger, summarize_artifact

logger = logging.getLogger(__name__)

CreationCallback = Callable[[LibraryEntry], None]
Notifier = Callable[[str], None]

ALREADY_SAVED_MESSAGE = "Already saved!"


class Stage(str, Enum):
    """Stages across all tools; each workflow uses its own subset."""

    INPUT = "input"
    LOADING = "loading"
    RESULT = "result"
    ERROR = "error"
    EDITING = "editing"
    PROMPT = "prompt"
    CONTENT = "content"
    ITERATE = "iterate"


def _log_notification(message: str) -> None:
    logger.info("Notification: %s", message)


class BaseWorkflow:
    """One tool session: stage, original input, artifact history and saved flags.

    ``stage`` is the resting stage the session returns to; ``view_stage``
    folds in the transient loading and error conditions. Failures raised by
    the generation layer are caught at the stage boundary and kept in
    ``error`` (message) and ``failure`` (exception); shared state is only
    touched after an operation succeeded.
    """

    name: ClassVar[str] = "workflow"
    kind: ClassVar[str] = "Creation"
    initial_stage: ClassVar[Stage] = Stage.INPUT
    loading_messages: ClassVar[Tuple[str, ...]] = ("Working on it...",)

    def __init__(
        self,
        client: GenerationJobClient,
        *,
        session_id: str,
        logger: RunLogger,
        on_creation_complete: Optional[CreationCallback] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        self._client = client
        self.session_id = session_id
        self.logger = logger
        self._on_creation_complete = on_creation_complete or (lambda entry: None)
        self._notify = notify or _log_notification
        self._step_counter = 0
        self.history: ArtifactHistory[str] = ArtifactHistory()
        self._saved_refs: Set[str] = set()
        self._reset_session()

    def _reset_session(self) -> None:
        self.stage = self.initial_stage
        self.original: Optional[ImageFile] = None
        self.error: Optional[str] = None
        self.failure: Optional[StudioError] = None
        self.is_loading = False
        self.loading_message = ""
        self.history.reset()
        self._saved_refs.clear()

    @property
    def view_stage(self) -> Stage:
        if self.is_loading:
            return Stage.LOADING
        if self.error:
            return Stage.ERROR
        return self.stage

    @property
    def result(self) -> Optional[str]:
        return self.history.current()

    @property
    def is_saved(self) -> bool:
        current = self.result
        return current is not None and current in self._saved_refs

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> None:
        self.history.undo()

    def redo(self) -> None:
        self.history.redo()

    def comparison_pair(self) -> Tuple[Optional[str], Optional[str]]:
        """(previous, current) for before/after display.

        The first entry is compared against the uploaded original; later
        entries against the entry right before them.
        """
        current = self.result
        if current is None:
            return None, None
        previous = self.history.previous()
        if previous is None and self.original is not None:
            previous = self.original.data_url
        return previous, current

    def apply_edit(self, edited_ref: str) -> None:
        """Record an externally edited artifact as a new history entry."""
        if self.result is None:
            raise InvalidTransitionError("There is no result to edit yet.")
        ImageFile.from_data_url(edited_ref)
        self.history.append(edited_ref)
        self.log_response("edit", summarize_artifact(edited_ref))

    def save(self) -> bool:
        """Publish the current artifact to the library once."""
        current = self.result
        if current is None:
            return False
        if current in self._saved_refs:
            self._notify(ALREADY_SAVED_MESSAGE)
            return False
        self._on_creation_complete(self._library_entry(current))
        self._saved_refs.add(current)
        return True

    def _library_entry(self, result_ref: str) -> LibraryEntry:
        original_ref = self.original.data_url if self.original else None
        return LibraryEntry(kind=self.kind, result_ref=result_ref, original_ref=original_ref)

    def start_over(self) -> None:
        """Hard reset back to the initial stage."""
        self._reset_session()

    @property
    def is_fatal(self) -> bool:
        """Configuration failures stay on screen; retrying cannot fix them."""
        return isinstance(self.failure, ConfigurationError)

    def dismiss_error(self) -> None:
        if self.is_fatal:
            return
        self.error = None
        self.failure = None

    def seed(self, image: ImageFile) -> None:
        """Receive an image handed over from the library."""
        raise InvalidTransitionError(f"{self.name} does not accept library images.")

    def _require_idle(self) -> None:
        if self.is_loading:
            raise InvalidTransitionError(f"{self.name} is already working on a request.")

    def _require_stage(self, *allowed: Stage) -> None:
        self._require_idle()
        if self.stage not in allowed:
            names = ", ".join(stage.value for stage in allowed)
            raise InvalidTransitionError(
                f"{self.name} cannot do that from stage {self.stage.value!r} (expected {names})."
            )

    @asynccontextmanager
    async def _stage(self, step: str, *, recovery: Stage, default_message: str) -> AsyncIterator[None]:
        """Run one Loading phase; a ``StudioError`` moves the session to ``recovery``."""
        self._require_idle()
        self.is_loading = True
        self.error = None
        self.failure = None
        self.loading_message = self.loading_messages[0] if self.loading_messages else ""
        try:
            yield
        except StudioError as exc:
            self.error = str(exc) or default_message
            self.failure = exc
            self.stage = recovery
            logger.warning("%s step %s failed: %s", self.name, step, self.error)
            self.log_response(step, {"error": self.error, "kind": type(exc).__name__})
        finally:
            self.is_loading = False
            self.loading_message = ""

    def log_prompt(self, step: str, prompt: str) -> None:
        """Persist the instruction sent for ``step``."""
        self._step_counter += 1
        self.logger.log_prompt(self.session_id, self._step_name(step), prompt)

    def log_response(self, step: str, response: object) -> None:
        """Persist a compact response summary for ``step``."""
        self.logger.log_response(self.session_id, self._step_name(step), response)

    def _step_name(self, step: str) -> str:
        return f"{self._step_counter:02d}-{self.name}-{step}"
