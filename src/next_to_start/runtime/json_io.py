from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping


def load_json_object_text(text: str) -> dict[str, object] | None:
    """Parse ``text`` as a JSON object; ``None`` when it is not one."""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, Mapping):
        return None
    return {str(key): value for key, value in payload.items()}


def read_text_or_none(path: Path, *, encoding: str = "utf-8") -> str | None:
    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeError):
        return None


def dump_json(payload: object) -> str:
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"
