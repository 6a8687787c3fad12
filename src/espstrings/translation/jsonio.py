"""Read and write ExtractedString lists as JSON."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from espstrings.translation.extractor import ExtractedString


def strings_to_json(strings: Iterable[ExtractedString], indent: int = 2) -> str:
    return json.dumps([s.to_dict() for s in strings], indent=indent, ensure_ascii=False)


def strings_from_json(text: str) -> list[ExtractedString]:
    """Parse a JSON array of string entries.

    Raises:
        ValueError: not a JSON array of objects, or an entry lacks a required key.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of strings, got {type(data).__name__}")
    entries: list[ExtractedString] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Entry {i} is not an object")
        entries.append(ExtractedString.from_dict(item))
    return entries


def save_strings(strings: Iterable[ExtractedString], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(strings_to_json(strings) + "\n", encoding="utf-8")
    return path


def load_strings(path: str | Path) -> list[ExtractedString]:
    return strings_from_json(Path(path).read_text(encoding="utf-8-sig"))
