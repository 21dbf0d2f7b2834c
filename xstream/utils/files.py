"""Disk and base64 helpers for logs, uploads and downloaded videos."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from pathlib import Path
from typing import Any


def ensure_dir(path: str | Path) -> Path:
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def write_json(path: str | Path, data: Any) -> Path:
    """Dump ``data`` as indented UTF-8 JSON; unknown objects fall back to ``str``."""
    target = Path(path)
    ensure_dir(target.parent)
    target.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    return target


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode_to_bytes(data: str) -> bytes:
    """Strict decode; anything outside the base64 alphabet raises ``ValueError``."""
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid base64 payload.") from exc


def atomic_write(path: str | Path, content: bytes) -> Path:
    """Write to ``<path>.tmp`` then rename over ``path``."""
    target = Path(path)
    ensure_dir(target.parent)
    temp_path = target.with_suffix(target.suffix + ".tmp")
    temp_path.write_bytes(content)
    os.replace(temp_path, target)
    return target
