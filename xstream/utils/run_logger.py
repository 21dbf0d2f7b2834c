"""Per-session prompt and response logs kept next to the run."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .files import ensure_dir, sha256_hex, write_json


class RunLogger:
    """Writes ``<step>-prompt.txt`` and ``<step>-response.json`` under ``runs/<session_id>``."""

    def __init__(self, base_dir: str | Path = "runs") -> None:
        self._base_dir = ensure_dir(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def log_prompt(self, session_id: str, step_name: str, prompt: str) -> None:
        (self._session_dir(session_id) / f"{step_name}-prompt.txt").write_text(prompt, encoding="utf-8")

    def log_response(self, session_id: str, step_name: str, response: Any) -> None:
        write_json(self._session_dir(session_id) / f"{step_name}-response.json", response)

    def _session_dir(self, session_id: str) -> Path:
        return ensure_dir(self._base_dir / session_id)


def summarize_artifact(ref: str) -> dict:
    """Compact description of a data URL so logs never carry the payload."""
    header, _, payload = ref.partition(",")
    return {
        "header": header if payload else "",
        "length": len(payload or ref),
        "sha256": sha256_hex((payload or ref).encode("utf-8")),
    }
