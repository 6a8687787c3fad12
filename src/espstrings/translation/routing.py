"""Which subrecords carry translatable text, and which string table they live in."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from espstrings.core.constants import StringTableKind

# Dialogue response records keep all their text in the IL table
_IL_RECORDS: frozenset[bytes] = frozenset({b"INFO"})

# Long-form text (descriptions, book contents, quest log entries)
_DL_SUBRECORDS: frozenset[bytes] = frozenset({b"DESC", b"CNAM"})


def _tag(value: bytes | str) -> bytes:
    tag = value.encode("ascii") if isinstance(value, str) else bytes(value)
    if len(tag) != 4:
        raise ValueError(f"Type tags are 4 characters, got {value!r}")
    return tag


class StringRouter:
    """Translatability table plus the fixed table-kind routing rules.

    The mapping (record type → translatable subrecord types) is always passed
    in; ``default()`` loads the one shipped with the package.
    """

    def __init__(self, mapping: Mapping[bytes | str, Iterable[bytes | str]]) -> None:
        self._records: dict[bytes, frozenset[bytes]] = {
            _tag(rec): frozenset(_tag(s) for s in subs) for rec, subs in mapping.items()
        }

    def __repr__(self) -> str:
        return f"StringRouter({len(self._records)} record types)"

    @property
    def record_types(self) -> list[bytes]:
        return sorted(self._records)

    def subrecord_types(self, record_type: bytes) -> frozenset[bytes]:
        return self._records.get(record_type, frozenset())

    def is_translatable(self, record_type: bytes, subrecord_type: bytes) -> bool:
        """Check if a subrecord should be translated given its parent record type."""
        return subrecord_type in self._records.get(record_type, ())

    @staticmethod
    def route(record_type: bytes, subrecord_type: bytes) -> StringTableKind:
        """String table kind holding a localized subrecord's text.

        INFO records go to ILSTRINGS, DESC/CNAM anywhere else to DLSTRINGS,
        everything else to STRINGS.
        """
        if record_type in _IL_RECORDS:
            return StringTableKind.ILSTRINGS
        if subrecord_type in _DL_SUBRECORDS:
            return StringTableKind.DLSTRINGS
        return StringTableKind.STRINGS

    @classmethod
    def from_toml(cls, path: str | Path) -> StringRouter:
        """Load a routing table from a TOML file.

        Expected format:
            [records]
            WEAP = ["FULL", "DESC"]
            INFO = ["NAM1", "RNAM"]
        """
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls(data.get("records", {}))

    @classmethod
    def default(cls) -> StringRouter:
        """The routing table shipped as package data."""
        from importlib.resources import files

        raw = files("espstrings.data").joinpath("string_records.toml").read_text(encoding="utf-8")
        return cls(tomllib.loads(raw).get("records", {}))
