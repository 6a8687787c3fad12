"""Shared test fixtures for espstrings tests."""

from __future__ import annotations

import struct

import pytest

from espstrings.core.constants import RecordFlag, StringTableKind
from espstrings.core.records import GroupRecord, PluginFile, Record, Subrecord
from espstrings.core.string_table import StringTable, StringTableEntry, StringTableSet
from espstrings.translation.routing import StringRouter

# Routing table used by most tests, independent of the packaged default
TEST_ROUTES = {
    "WEAP": ["FULL", "DESC"],
    "ARMO": ["FULL", "DESC"],
    "BOOK": ["FULL", "DESC", "CNAM"],
    "MESG": ["FULL", "DESC", "ITXT"],
    "INFO": ["NAM1", "RNAM"],
    "QUST": ["FULL", "CNAM", "NNAM"],
}


def make_subrecord(type_tag: str, data: bytes | str) -> Subrecord:
    """Create a Subrecord from a string type and data (str → UTF-8 + NUL)."""
    if isinstance(data, str):
        data = data.encode("utf-8") + b"\x00"
    return Subrecord(type=type_tag.encode("ascii"), data=bytearray(data))


def make_string_id_subrecord(type_tag: str, string_id: int) -> Subrecord:
    """Create a localized subrecord holding a u32 StringID."""
    return Subrecord(type=type_tag.encode("ascii"), data=bytearray(struct.pack("<I", string_id)))


def make_tes4_header(masters: list[str] | None = None, flags: int = 0) -> Record:
    """Create a minimal TES4 header record with optional MAST/DATA pairs."""
    hedr_data = struct.pack("<fII", 1.7, 0, 0x800)
    subs = [Subrecord(type=b"HEDR", data=bytearray(hedr_data))]
    for master in masters or []:
        subs.append(make_subrecord("MAST", master))
        subs.append(Subrecord(type=b"DATA", data=bytearray(8)))
    return Record(type=b"TES4", flags=flags, form_id=0, subrecords=subs)


def make_record(
    type_tag: str,
    form_id: int,
    subrecords: list[Subrecord] | None = None,
    flags: int = 0,
) -> Record:
    """Create a Record with the given type, form_id, and subrecords."""
    return Record(
        type=type_tag.encode("ascii"),
        flags=flags,
        form_id=form_id,
        subrecords=subrecords or [],
    )


def make_group(
    label: str | bytes,
    children: list[Record | GroupRecord] | None = None,
    group_type: int = 0,
) -> GroupRecord:
    """Create a GroupRecord with the given label."""
    if isinstance(label, str):
        label = label.encode("ascii").ljust(4, b"\x00")[:4]
    return GroupRecord(label=label, group_type=group_type, children=children or [])


def make_plugin(
    records: list[tuple[str, int, list[Subrecord]]] | None = None,
    *,
    masters: list[str] | None = None,
    flags: int = 0,
    name: str = "Test.esp",
) -> PluginFile:
    """Build a minimal valid PluginFile.

    Args:
        records: List of (record_type, form_id, subrecords) tuples, grouped
                 into one top-level GRUP per record type in first-seen order.
    """
    plugin = PluginFile(header=make_tes4_header(masters, flags), name=name)
    by_type: dict[str, GroupRecord] = {}
    for rec_type, form_id, subs in records or []:
        group = by_type.get(rec_type)
        if group is None:
            group = by_type[rec_type] = make_group(rec_type)
            plugin.groups.append(group)
        group.children.append(make_record(rec_type, form_id, subs))
    return plugin


def make_string_tables(
    entries: dict[StringTableKind, dict[int, str]],
    plugin_name: str = "Test",
    language: str = "english",
) -> StringTableSet:
    tables = StringTableSet(plugin_name=plugin_name, language=language)
    for kind, texts in entries.items():
        table = StringTable(kind=kind, plugin_name=plugin_name, language=language)
        for sid, text in texts.items():
            table.entries[sid] = StringTableEntry(sid, text)
        tables.add(table)
    return tables


# --- Raw byte builders, independent of the writer -------------------------------


def raw_subrecord(type_tag: bytes, payload: bytes) -> bytes:
    return type_tag + struct.pack("<H", len(payload)) + payload


def raw_record(type_tag: bytes, form_id: int, body: bytes, flags: int = 0, timestamp: int = 0) -> bytes:
    return struct.pack("<4sIIIHHHH", type_tag, len(body), flags, form_id, timestamp, 0, 44, 0) + body


def raw_group(label: bytes, children: bytes, group_type: int = 0) -> bytes:
    return struct.pack("<4sI4sIHHI", b"GRUP", 24 + len(children), label, group_type, 0, 0, 0) + children


def raw_header(masters: list[str] | None = None, flags: int = 0) -> bytes:
    body = raw_subrecord(b"HEDR", struct.pack("<fII", 1.7, 0, 0x800))
    for master in masters or []:
        body += raw_subrecord(b"MAST", master.encode("ascii") + b"\x00")
        body += raw_subrecord(b"DATA", bytes(8))
    return raw_record(b"TES4", 0, body, flags=flags)


@pytest.fixture
def router() -> StringRouter:
    return StringRouter(TEST_ROUTES)


@pytest.fixture
def simple_plugin() -> PluginFile:
    """A plugin with one WEAP record whose only subrecord is FULL "Iron Sword"."""
    return make_plugin([
        ("WEAP", 0x00012BB7, [make_subrecord("FULL", "Iron Sword")]),
    ])


@pytest.fixture
def multi_record_plugin() -> PluginFile:
    """A plugin with multiple record types for translation testing."""
    return make_plugin([
        ("WEAP", 0x00001000, [
            make_subrecord("EDID", "TestWeapon"),
            make_subrecord("FULL", "Iron Sword"),
        ]),
        ("ARMO", 0x00001001, [
            make_subrecord("EDID", "TestArmor"),
            make_subrecord("FULL", "Leather Armor"),
            make_subrecord("DESC", "A sturdy set of leather armor."),
        ]),
        ("BOOK", 0x00001002, [
            make_subrecord("EDID", "TestBook"),
            make_subrecord("FULL", "Wasteland Survival Guide"),
            make_subrecord("DESC", "A guide to surviving the wasteland."),
        ]),
    ])


@pytest.fixture
def localized_plugin() -> PluginFile:
    """A LOCALIZED plugin with StringIDs in every table kind, tables attached."""
    plugin = make_plugin(
        [
            ("WEAP", 0x01000800, [
                make_subrecord("EDID", "LocSword"),
                make_string_id_subrecord("FULL", 1),
                make_string_id_subrecord("DESC", 2),
            ]),
            ("INFO", 0x01000801, [
                make_string_id_subrecord("NAM1", 3),
            ]),
        ],
        masters=["Skyrim.esm"],
        flags=RecordFlag.LOCALIZED,
    )
    plugin.string_tables = make_string_tables({
        StringTableKind.STRINGS: {1: "Steel Sword"},
        StringTableKind.DLSTRINGS: {2: "A blade of tempered steel."},
        StringTableKind.ILSTRINGS: {3: "Watch the skies, traveler."},
    })
    return plugin
