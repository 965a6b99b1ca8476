from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from ..errors import NoteReadError

logger = logging.getLogger(__name__)


def unwrap_envelope(content: str) -> str:
    """Return the `data` string of a ``{"data": "..."}`` envelope, else the content unchanged."""
    if not content.lstrip().startswith("{"):
        return content
    try:
        doc = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON envelope, treating note as plain text")
        return content
    if isinstance(doc, dict) and isinstance(doc.get("data"), str):
        return doc["data"]
    return content


class NoteReader:
    """Reads physician notes from a folder of text files."""

    def __init__(self, pattern: str = "*.txt") -> None:
        self.pattern = pattern

    def list_notes(self, folder: Path | str) -> List[Path]:
        path = Path(folder)
        if not path.is_dir():
            raise NoteReadError(f"Notes folder does not exist: {path}")
        return sorted(p for p in path.glob(self.pattern) if p.is_file())

    def read_note(self, path: Path | str) -> str:
        path = Path(path)
        if not path.is_file():
            raise NoteReadError(f"Physician note file not found: {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise NoteReadError(f"Error reading file {path}: {e}") from e
        return unwrap_envelope(content)
