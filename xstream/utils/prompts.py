"""Generation instructions stored as ``{{ var }}`` templates under ``xstream/prompts``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping, Optional

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def load_prompt(name: str, variables: Optional[Mapping[str, object]] = None) -> str:
    """Render ``prompts/<name>.txt``; unknown placeholders are left in place."""
    template = (PROMPTS_DIR / f"{name}.txt").read_text(encoding="utf-8")
    values = variables or {}

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template).strip()
