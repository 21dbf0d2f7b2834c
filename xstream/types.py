"""Core data models used across the creative suite."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from .errors import LocalIOError
from .utils.files import b64decode_to_bytes, b64encode

_DATA_URL_PATTERN = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,(.*)$", re.DOTALL)

ARTISTIC_STYLES = (
    "Photorealistic",
    "Impressionistic",
    "Surreal",
    "Cyberpunk",
    "Hyper Realistic",
    "Anime",
    "Toon",
    "Painting",
    "Graffiti",
)
GENRES = (
    "None",
    "Pop",
    "Rock",
    "Hip Hop",
    "EDM",
    "Country",
    "Jazz",
    "Classical",
    "R&B",
    "Metal",
    "Folk",
    "Indie",
    "Punk",
    "Reggae",
)
LIGHTING_OPTIONS = (
    "Cinematic",
    "Golden Hour",
    "Blue Hour",
    "Neon",
    "Studio",
    "Natural",
    "High-Key",
    "Low-Key",
)
MOODS = (
    "Neutral",
    "Joyful",
    "Romantic",
    "Ominous",
    "Mysterious",
    "Peaceful",
    "Energetic",
    "Melancholic",
    "Whimsical",
)
CAMERA_ANGLES = (
    "Medium Shot",
    "Eye-Level",
    "Low Angle",
    "High Angle",
    "Close-up",
    "Wide Shot",
    "Dutch Angle",
    "Over-the-Shoulder",
)
ASPECT_RATIOS = ("16:9", "9:16", "1:1", "4:3", "3:4")
DEFAULT_ASPECT_RATIO = ASPECT_RATIOS[0]
NO_GENRE = "None"


@dataclass(frozen=True, slots=True)
class ImageFile:
    """Base64 image payload plus its declared MIME type."""

    data: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return b64decode_to_bytes(self.data)

    def to_part(self) -> Dict[str, Any]:
        """Render as an inline request part for the backend."""
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> "ImageFile":
        return cls(data=b64encode(raw), mime_type=mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> "ImageFile":
        """Parse a base64 data URL, defaulting the MIME type to PNG."""
        match = _DATA_URL_PATTERN.match(url or "")
        if not match or not match.group(2):
            raise LocalIOError("Failed to read image data URL.")
        try:
            b64decode_to_bytes(match.group(2))
        except ValueError as exc:
            raise LocalIOError("Failed to read image data URL.") from exc
        return cls(data=match.group(2), mime_type=match.group(1) or "image/png")


@dataclass(frozen=True, slots=True)
class CreativeControls:
    """Six independent creative choices applied to prompt drafting."""

    artistic_style: str = ARTISTIC_STYLES[0]
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    genre: str = NO_GENRE
    lighting: str = LIGHTING_OPTIONS[0]
    mood: str = MOODS[0]
    camera_angle: str = CAMERA_ANGLES[0]

    def __post_init__(self) -> None:
        for name, options in _CONTROL_OPTIONS.items():
            value = getattr(self, name)
            if value not in options:
                raise ValueError(f"Unsupported {name.replace('_', ' ')}: {value!r}")

    @property
    def has_genre(self) -> bool:
        return self.genre != NO_GENRE

    def updated(self, **changes: str) -> "CreativeControls":
        return replace(self, **changes)

    def randomized(self, rng: random.Random | None = None) -> "CreativeControls":
        """Re-roll every control except the aspect ratio."""
        rng = rng or random.Random()
        return replace(
            self,
            artistic_style=rng.choice(ARTISTIC_STYLES),
            genre=rng.choice(GENRES),
            lighting=rng.choice(LIGHTING_OPTIONS),
            mood=rng.choice(MOODS),
            camera_angle=rng.choice(CAMERA_ANGLES),
        )


_CONTROL_OPTIONS = {
    "artistic_style": ARTISTIC_STYLES,
    "aspect_ratio": ASPECT_RATIOS,
    "genre": GENRES,
    "lighting": LIGHTING_OPTIONS,
    "mood": MOODS,
    "camera_angle": CAMERA_ANGLES,
}


@dataclass(frozen=True, slots=True)
class LibraryEntry:
    """A saved artifact; immutable once created."""

    kind: str
    result_ref: str
    original_ref: Optional[str] = None
    video_ref: Optional[str] = None


class VideoJobStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


@dataclass(slots=True)
class VideoJob:
    """Server-side video operation as last observed."""

    name: str
    status: VideoJobStatus = VideoJobStatus.PENDING
    download_ref: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status is VideoJobStatus.DONE


@dataclass(frozen=True, slots=True)
class VideoArtifact:
    """Downloaded video materialized as a local file."""

    local_path: str
    source_image_ref: str
    mime_type: str = "video/mp4"
    sha256: Optional[str] = None

    @property
    def uri(self) -> str:
        return f"file://{self.local_path}"


@dataclass(slots=True)
class DownloadResult:
    """Raw outcome of an authenticated fetch."""

    status_code: int
    reason: str = ""
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")
