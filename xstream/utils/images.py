"""Pillow helpers that turn local files into ``ImageFile`` values."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import LocalIOError
from ..types import ImageFile

MAX_UPLOAD_DIM = 4096
GREEN_SCREEN_COLOR = (0, 255, 0, 255)
_ORIENTATION_TAG = 0x0112


def load_image_file(path: str | Path) -> ImageFile:
    """Read an upload from disk, normalizing orientation and size."""
    try:
        raw_bytes = Path(path).read_bytes()
    except OSError as exc:
        raise LocalIOError(f"Failed to read file: {path}") from exc
    return image_file_from_bytes(raw_bytes)


def image_file_from_bytes(raw_bytes: bytes) -> ImageFile:
    """Decode arbitrary image bytes into an ``ImageFile``."""
    buffer = BytesIO(raw_bytes)
    try:
        with Image.open(buffer) as image:
            source_format = image.format or "PNG"
            mime_type = Image.MIME.get(source_format, "image/png")
            if getattr(image, "n_frames", 1) > 1:
                image.seek(0)

            orientation = image.getexif().get(_ORIENTATION_TAG, 1)
            oversized = max(image.size) > MAX_UPLOAD_DIM
            if orientation in (0, 1) and not oversized:
                return ImageFile.from_bytes(raw_bytes, mime_type)

            transposed = ImageOps.exif_transpose(image)
            if max(transposed.size) > MAX_UPLOAD_DIM:
                transposed.thumbnail((MAX_UPLOAD_DIM, MAX_UPLOAD_DIM), Image.LANCZOS)
            return _encode(transposed)
    except (UnidentifiedImageError, OSError) as exc:
        raise LocalIOError("Failed to read file.") from exc


def apply_green_screen(foreground: ImageFile) -> ImageFile:
    """Flatten a transparent cutout onto a solid green background."""
    try:
        raw_bytes = foreground.to_bytes()
        with Image.open(BytesIO(raw_bytes)) as image:
            cutout = image.convert("RGBA")
            canvas = Image.new("RGBA", cutout.size, GREEN_SCREEN_COLOR)
            canvas.alpha_composite(cutout)
            output = BytesIO()
            canvas.save(output, format="PNG")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise LocalIOError("Failed to apply green screen.") from exc
    return ImageFile.from_bytes(output.getvalue(), "image/png")


def _encode(image: Image.Image) -> ImageFile:
    has_alpha = "A" in image.getbands()
    if image.mode not in {"RGB", "RGBA"}:
        image = image.convert("RGBA" if has_alpha else "RGB")

    output = BytesIO()
    if has_alpha:
        image.save(output, format="PNG", optimize=True)
        return ImageFile.from_bytes(output.getvalue(), "image/png")
    image.save(output, format="JPEG", quality=90, optimize=True)
    return ImageFile.from_bytes(output.getvalue(), "image/jpeg")
