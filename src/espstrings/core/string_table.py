"""Parse, manipulate, and serialize string table files (.STRINGS, .DLSTRINGS, .ILSTRINGS).

String table format (all little-endian):
  Header:    [count: u32] [data_size: u32]
  Directory: [string_id: u32] [offset: u32] × count   (offsets relative to data block start)
  Data:
    STRINGS:      null-terminated strings
    IL/DLSTRINGS: [length: u32] [string: null-terminated]

The length prefix normally counts content bytes only; some tools also count
the terminator. Both parse, and the convention found on read is kept on write.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from espstrings.core.binary import ByteReader, decode_zstring, encode_text, pack_u32
from espstrings.core.constants import (
    DEFAULT_LANGUAGE,
    STRING_TABLE_DIR_ENTRY_SIZE,
    STRING_TABLE_HEADER_SIZE,
    StringTableKind,
)
from espstrings.core.errors import TruncatedData

logger = logging.getLogger(__name__)

# Lookup order when the caller does not know which table holds an ID
LOOKUP_ORDER = (StringTableKind.STRINGS, StringTableKind.ILSTRINGS, StringTableKind.DLSTRINGS)


@dataclass
class StringTableEntry:
    """One string. Two entries are equal when their ID and text match."""

    id: int
    text: str
    length: int | None = field(default=None, compare=False)
    encoding: str = field(default="utf-8", compare=False)


@dataclass
class StringTable:
    """A single string table (one of the three kinds)."""

    kind: StringTableKind
    plugin_name: str = ""
    language: str = DEFAULT_LANGUAGE
    entries: dict[int, StringTableEntry] = field(default_factory=dict)
    length_includes_terminator: bool = False

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, string_id: int) -> bool:
        return string_id in self.entries

    def get(self, string_id: int) -> str | None:
        entry = self.entries.get(string_id)
        return entry.text if entry is not None else None

    def set(self, string_id: int, text: str) -> None:
        """Insert or replace an entry, keeping the code page of the one it replaces."""
        old = self.entries.get(string_id)
        encoding = old.encoding if old is not None else "utf-8"
        self.entries[string_id] = StringTableEntry(string_id, text, encoding=encoding)

    def remove(self, string_id: int) -> bool:
        return self.entries.pop(string_id, None) is not None

    def ids(self) -> list[int]:
        return sorted(self.entries)

    def file_name(self) -> str:
        return f"{self.plugin_name}_{self.language}.{self.kind.value}"

    def to_bytes(self) -> bytes:
        return serialize_string_table(self)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        kind: StringTableKind,
        plugin_name: str = "",
        language: str = DEFAULT_LANGUAGE,
    ) -> StringTable:
        return parse_string_table(data, kind, plugin_name=plugin_name, language=language)


@dataclass
class StringTableSet:
    """Up to one table per kind for a single (plugin, language) pair.

    plugin_name is the plugin file name without its extension.
    """

    plugin_name: str = ""
    language: str = DEFAULT_LANGUAGE
    tables: dict[StringTableKind, StringTable] = field(default_factory=dict)

    def __iter__(self) -> Iterator[StringTable]:
        return iter(self.tables.values())

    def table(self, kind: StringTableKind) -> StringTable | None:
        return self.tables.get(kind)

    def add(self, table: StringTable) -> None:
        self.tables[table.kind] = table

    def get(self, kind: StringTableKind, string_id: int) -> str | None:
        table = self.tables.get(kind)
        return table.get(string_id) if table is not None else None

    def lookup(self, string_id: int) -> str | None:
        """Find an ID in any table (STRINGS, then ILSTRINGS, then DLSTRINGS)."""
        for kind in LOOKUP_ORDER:
            text = self.get(kind, string_id)
            if text is not None:
                return text
        return None

    def set_text(self, kind: StringTableKind, string_id: int, text: str) -> bool:
        """Replace or insert an entry. Returns False if no table of that kind is loaded."""
        table = self.tables.get(kind)
        if table is None:
            return False
        table.set(string_id, text)
        return True

    def file_name(self, kind: StringTableKind, language: str | None = None) -> str:
        return f"{self.plugin_name}_{language or self.language}.{kind.value}"

    def total_entries(self) -> int:
        return sum(len(t) for t in self.tables.values())

    def to_bytes(self) -> dict[StringTableKind, bytes]:
        return {kind: serialize_string_table(table) for kind, table in self.tables.items()}

    @classmethod
    def from_bytes(
        cls,
        mapping: Mapping[StringTableKind, bytes],
        plugin_name: str = "",
        language: str = DEFAULT_LANGUAGE,
    ) -> StringTableSet:
        tables = {
            kind: parse_string_table(raw, kind, plugin_name=plugin_name, language=language)
            for kind, raw in mapping.items()
        }
        return cls(plugin_name=plugin_name, language=language, tables=tables)


def parse_string_table(
    data: bytes,
    kind: StringTableKind,
    *,
    plugin_name: str = "",
    language: str = DEFAULT_LANGUAGE,
) -> StringTable:
    """Parse a binary string table into a StringTable.

    Args:
        data: Raw bytes of the .STRINGS/.DLSTRINGS/.ILSTRINGS file.
        kind: Which type of table this is.

    Returns:
        Parsed StringTable. Duplicate IDs keep the last directory entry.

    Raises:
        TruncatedData: the buffer is shorter than its header, directory or
            declared data region, an offset points outside the data region,
            or a string has no terminator.
    """
    if len(data) < STRING_TABLE_HEADER_SIZE:
        raise TruncatedData(f"String table is {len(data)} bytes, shorter than its header")

    reader = ByteReader(data)
    count = reader.read_u32("string count")
    data_size = reader.read_u32("string data size")
    directory = [
        (reader.read_u32("string id"), reader.read_u32("string offset"))
        for _ in range(count)
    ]
    data_start = STRING_TABLE_HEADER_SIZE + count * STRING_TABLE_DIR_ENTRY_SIZE
    region = ByteReader(data, data_start).sub_reader(data_size, "string data region")
    region_end = data_start + data_size

    table = StringTable(kind=kind, plugin_name=plugin_name, language=language)
    with_terminator = 0

    for string_id, offset in directory:
        if offset >= data_size:
            raise TruncatedData(f"String 0x{string_id:08X} offset {offset} outside data region ({data_size} bytes)")
        pos = data_start + offset

        if kind.has_length_prefix:
            region.seek(pos)
            length = region.read_u32(f"length of string 0x{string_id:08X}")
            raw = region.read_bytes(length, f"string 0x{string_id:08X}")
            if raw.endswith(b"\x00"):
                with_terminator += 1
            elif region.peek(1) != b"\x00":
                raise TruncatedData(f"String 0x{string_id:08X} has no terminator")
        else:
            end = data.find(b"\x00", pos, region_end)
            if end == -1:
                raise TruncatedData(f"String 0x{string_id:08X} has no terminator")
            raw = data[pos:end]
            length = None

        text = decode_zstring(raw)
        table.entries[string_id] = StringTableEntry(string_id, text.content, length, text.encoding)

    if kind.has_length_prefix and directory and with_terminator == len(directory):
        table.length_includes_terminator = True

    logger.debug("Parsed %s table with %d entries", kind.value, len(table.entries))
    return table


def serialize_string_table(table: StringTable) -> bytes:
    """Serialize a StringTable back to binary format.

    Entries are written in ascending string_id order and offsets are
    recomputed from scratch.
    """
    directory: list[bytes] = []
    data_parts: list[bytes] = []
    current_offset = 0

    for sid in table.ids():
        entry = table.entries[sid]
        encoded, _ = encode_text(entry.text, entry.encoding)

        if table.kind.has_length_prefix:
            length = len(encoded) + (1 if table.length_includes_terminator else 0)
            part = pack_u32(length) + encoded + b"\x00"
        else:
            part = encoded + b"\x00"

        directory.append(pack_u32(sid) + pack_u32(current_offset))
        data_parts.append(part)
        current_offset += len(part)

    header = pack_u32(len(directory)) + pack_u32(current_offset)
    return header + b"".join(directory) + b"".join(data_parts)
