"""Ports implemented by generation backends and host capabilities."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Protocol

from ..types import DownloadResult, ImageFile

Part = Dict[str, Any]


class GenerationBackend(Protocol):
    """Synchronous request/response access to the generative service."""

    def generate_content(
        self,
        model: str,
        parts: List[Part],
        *,
        config: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...

    def stream_content(
        self,
        model: str,
        parts: List[Part],
        *,
        system_instruction: Optional[str] = None,
    ) -> Iterator[str]:
        ...

    def submit_video(
        self,
        model: str,
        prompt: str,
        image: ImageFile,
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        ...

    def get_operation(self, name: str) -> Dict[str, Any]:
        ...

    def download(self, uri: str) -> DownloadResult:
        ...


class CredentialSelector(Protocol):
    """Host capability that lets the user pick a billing-enabled credential."""

    def has_selected_key(self) -> bool:
        ...

    def open_select_key(self) -> None:
        ...
