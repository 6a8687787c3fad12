"""Data classes representing the TES4 plugin record tree."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

from espstrings.core.binary import RawText, decode_zstring, encode_text
from espstrings.core.constants import (
    DEFAULT_LANGUAGE,
    EDID_TYPE,
    MAST_TYPE,
    GroupType,
    RecordFlag,
)

if TYPE_CHECKING:
    from espstrings.core.string_table import StringTableSet


@dataclass
class Subrecord:
    """A single subrecord: Type(4) + Size(2) + Data(N).

    data is a mutable bytearray so the patcher can modify it in-place.
    size is always computed from len(data); the on-disk u16 size (or the XXXX
    marker for large payloads) is regenerated by the writer.
    """

    type: bytes  # 4-byte ASCII tag, e.g. b"FULL"
    data: bytearray
    # Code page the payload decoded with, once it has been read as text
    encoding: str | None = field(default=None, compare=False)

    @property
    def size(self) -> int:
        return len(self.data)

    def decode_string(self) -> RawText:
        """Decode the payload as a null-terminated string and remember its encoding."""
        text = decode_zstring(self.data)
        self.encoding = text.encoding
        return text

    def encode_string(self, text: str) -> None:
        """Replace the payload with text + NUL, keeping the detected code page if it fits."""
        if self.encoding is None:
            self.decode_string()
        encoded, used = encode_text(text, self.encoding)
        self.data = bytearray(encoded + b"\x00")
        self.encoding = used


@dataclass
class Record:
    """A TES4 record: 24-byte header fields plus a list of subrecords.

    original_data keeps the data region exactly as read from disk (still
    compressed for compressed records). While modified is False the writer
    emits it verbatim, so untouched records rebuild byte-identically.
    """

    type: bytes  # 4-byte ASCII tag, e.g. b"WEAP"
    flags: int
    form_id: int
    timestamp: int = 0
    vcs_info: int = 0
    internal_version: int = 0
    unknown: int = 0
    subrecords: list[Subrecord] = field(default_factory=list)
    # Zero bytes trailing the last subrecord (shorter than a subrecord header)
    padding: bytes = field(default=b"", repr=False)
    original_data: bytes | None = field(default=None, repr=False)
    modified: bool = False

    @property
    def is_compressed(self) -> bool:
        return bool(self.flags & RecordFlag.COMPRESSED)

    @property
    def is_deleted(self) -> bool:
        return bool(self.flags & RecordFlag.DELETED)

    @property
    def editor_id(self) -> str | None:
        """Text of the first EDID subrecord, if any."""
        for sub in self.subrecords:
            if sub.type == EDID_TYPE:
                return decode_zstring(sub.data).content
        return None

    def find(self, sub_type: bytes) -> Subrecord | None:
        return next((s for s in self.subrecords if s.type == sub_type), None)

    def find_all(self, sub_type: bytes) -> list[Subrecord]:
        return [s for s in self.subrecords if s.type == sub_type]

    def mark_modified(self) -> None:
        """Drop the verbatim fast path; the next rebuild reserializes (and recompresses)."""
        self.modified = True


@dataclass
class GroupRecord:
    """A GRUP container holding records and nested groups.

    group_type stays a plain int so unknown kinds survive a round trip.
    The on-disk group size is never stored: the writer derives it.
    """

    label: bytes  # 4 raw bytes (meaning depends on group_type)
    group_type: int
    timestamp: int = 0
    vcs_info: int = 0
    unknown: int = 0
    children: list[Record | GroupRecord] = field(default_factory=list)

    @property
    def known_type(self) -> GroupType | None:
        try:
            return GroupType(self.group_type)
        except ValueError:
            return None

    def iter_records(self) -> Iterator[Record]:
        """Yield every record below this group in tree order."""
        for child in self.children:
            if isinstance(child, GroupRecord):
                yield from child.iter_records()
            else:
                yield child

    def iter_groups(self) -> Iterator[GroupRecord]:
        """Yield this group and every nested group, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, GroupRecord):
                yield from child.iter_groups()


Node = Union[Record, GroupRecord]


@dataclass
class PluginFile:
    """Top-level representation of an ESP/ESM/ESL file.

    Contains the TES4 header record followed by top-level GRUPs. String tables
    are never loaded implicitly; they are attached by load_localized_plugin().
    """

    header: Record  # The TES4 record
    groups: list[GroupRecord] = field(default_factory=list)
    name: str = ""
    path: Path | None = None
    language: str = DEFAULT_LANGUAGE
    string_tables: StringTableSet | None = field(default=None, repr=False)

    @property
    def masters(self) -> list[str]:
        """Master file names from the header's MAST subrecords, in file order."""
        return [decode_zstring(s.data).content for s in self.header.subrecords if s.type == MAST_TYPE]

    @property
    def is_localized(self) -> bool:
        """Check if this plugin uses external string tables (LOCALIZED flag)."""
        return bool(self.header.flags & RecordFlag.LOCALIZED)

    @property
    def is_master(self) -> bool:
        return bool(self.header.flags & RecordFlag.MASTER)

    @property
    def is_light_master(self) -> bool:
        return bool(self.header.flags & RecordFlag.LIGHT_MASTER)

    @property
    def stem(self) -> str:
        """Plugin name without extension, as used in string table file names."""
        return Path(self.name).stem if self.name else ""

    def format_form_id(self, form_id: int, masters: list[str] | None = None) -> str:
        """Render a FormID as ``<8-hex>|<origin file>``.

        The top byte indexes the master list; anything past it belongs to this
        plugin.
        """
        if masters is None:
            masters = self.masters
        index = form_id >> 24
        origin = masters[index] if index < len(masters) else self.name
        return f"{form_id:08X}|{origin}"

    def iter_records(self) -> Iterator[Record]:
        """Yield every record in the groups, in tree order (header excluded)."""
        for group in self.groups:
            yield from group.iter_records()

    def count_records(self) -> int:
        """Number of records including the TES4 header."""
        return 1 + sum(1 for _ in self.iter_records())

    def count_groups(self) -> int:
        return sum(1 for group in self.groups for _ in group.iter_groups())
