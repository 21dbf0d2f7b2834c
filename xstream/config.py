"""Configuration containers for the creative suite."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional

DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(slots=True)
class SuiteConfig:
    """Static configuration shared by every workflow session."""

    env_prefix: ClassVar[str] = "XSTREAM_"

    prompt_model: ClassVar[str] = "gemini-2.5-pro"
    text_model: ClassVar[str] = "gemini-2.5-flash"
    image_model: ClassVar[str] = "gemini-2.5-flash-image"
    video_model: ClassVar[str] = "veo-3.1-fast-generate-preview"

    runs_dir: str = "runs"
    videos_dir: str = "videos"
    enable_mock_generation: bool = True
    api_key: Optional[str] = None
    video_api_key: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    request_timeout: int = 120
    video_poll_interval: float = 10.0
    video_max_poll_attempts: Optional[int] = 60

    @property
    def effective_video_api_key(self) -> Optional[str]:
        """The credential used for video jobs and their downloads."""
        return self.video_api_key or self.api_key

    @classmethod
    def from_env(cls) -> "SuiteConfig":
        """Create a config object populated from environment variables."""
        prefix = cls.env_prefix
        max_polls = int(os.getenv(f"{prefix}VIDEO_MAX_POLLS", "60"))
        return cls(
            runs_dir=os.getenv(f"{prefix}RUNS_DIR", "runs"),
            videos_dir=os.getenv(f"{prefix}VIDEOS_DIR", "videos"),
            enable_mock_generation=os.getenv(f"{prefix}ENABLE_MOCKS", "true").lower() == "true",
            api_key=os.getenv("API_KEY") or os.getenv("GEMINI_API_KEY"),
            video_api_key=os.getenv(f"{prefix}VIDEO_API_KEY"),
            api_url=os.getenv(f"{prefix}API_URL", DEFAULT_API_URL),
            request_timeout=int(os.getenv(f"{prefix}REQUEST_TIMEOUT", "120")),
            video_poll_interval=float(os.getenv(f"{prefix}VIDEO_POLL_INTERVAL", "10")),
            video_max_poll_attempts=max_polls or None,
        )
