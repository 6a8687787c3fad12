"""Binary reader: bytes → Record tree for TES4 plugin files."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO

from espstrings.core.binary import ByteReader
from espstrings.core.compression import decompress_record_data
from espstrings.core.constants import (
    GRUP_HEADER_SIZE,
    GRUP_TYPE,
    OVERSIZE_SENTINEL,
    SUBRECORD_HEADER_SIZE,
    TES4_TYPE,
    XXXX_TYPE,
    RecordFlag,
)
from espstrings.core.errors import (
    EspError,
    MalformedHeader,
    TruncatedData,
    UnknownSubrecordFraming,
)
from espstrings.core.records import GroupRecord, PluginFile, Record, Subrecord

logger = logging.getLogger(__name__)


def parse_plugin(
    source: bytes | bytearray | memoryview | BinaryIO,
    *,
    name: str = "",
    workers: int = 1,
) -> PluginFile:
    """Parse a full ESP/ESM/ESL file from bytes or a binary stream.

    Returns a PluginFile with the TES4 header and all top-level GRUPs.
    With workers > 1 the top-level groups are parsed on a thread pool; they
    are independent byte ranges, so the result is identical either way.
    """
    data = source.read() if hasattr(source, "read") else source
    reader = ByteReader(data)

    if reader.peek(4) != TES4_TYPE:
        raise MalformedHeader(f"Expected TES4 header, got {reader.peek(4)!r}")
    header = _parse_record(reader)

    plugin = PluginFile(header=header, name=name)

    # Scan top-level group boundaries first; each range parses on its own.
    ranges: list[ByteReader] = []
    while not reader.at_end():
        tag = reader.peek(4)
        if tag != GRUP_TYPE:
            if len(tag) < 4:
                raise TruncatedData(f"Trailing {len(tag)} bytes after last group")
            raise MalformedHeader(f"Expected GRUP at top level, got {tag!r} at offset 0x{reader.tell():X}")
        start = reader.tell()
        reader.skip(4, "group tag")
        group_size = reader.read_u32("group size")
        if group_size < GRUP_HEADER_SIZE:
            raise MalformedHeader(f"Group at offset 0x{start:X} declares size {group_size} < {GRUP_HEADER_SIZE}")
        reader.seek(start)
        ranges.append(reader.sub_reader(group_size, "top-level group"))

    if workers > 1 and len(ranges) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            plugin.groups = list(pool.map(_parse_group, ranges))
    else:
        plugin.groups = [_parse_group(r) for r in ranges]

    return plugin


def parse_record(data: bytes | bytearray | memoryview) -> Record:
    """Parse one standalone record (header + data region)."""
    return _parse_record(ByteReader(data))


def parse_group(data: bytes | bytearray | memoryview) -> GroupRecord:
    """Parse one standalone GRUP and all its children."""
    return _parse_group(ByteReader(data))


def _parse_record(reader: ByteReader) -> Record:
    """Parse a single record (not a GRUP)."""
    rec_type = reader.read_tag("record type")
    data_size = reader.read_u32("record data size")
    flags = reader.read_u32("record flags")
    form_id = reader.read_u32("record FormID")
    try:
        timestamp = reader.read_u16("record timestamp")
        vcs_info = reader.read_u16("record version control")
        internal_version = reader.read_u16("record internal version")
        unknown = reader.read_u16("record header")
        raw_data = reader.read_bytes(data_size, "record data")

        record = Record(
            type=rec_type,
            flags=flags,
            form_id=form_id,
            timestamp=timestamp,
            vcs_info=vcs_info,
            internal_version=internal_version,
            unknown=unknown,
            original_data=raw_data,
        )

        if flags & RecordFlag.COMPRESSED:
            body, _ = decompress_record_data(raw_data)
            logger.debug(
                "Decompressed %s 0x%08X: %d -> %d bytes",
                rec_type.decode("ascii", "replace"), form_id, len(raw_data), len(body),
            )
        else:
            body = raw_data
        record.subrecords, record.padding = _parse_subrecords(body)
    except EspError as e:
        e.with_context(rec_type, form_id)
        raise

    return record


def _parse_group(reader: ByteReader) -> GroupRecord:
    """Parse a GRUP and all its children recursively."""
    start = reader.tell()
    tag = reader.read_tag("group tag")
    if tag != GRUP_TYPE:
        raise MalformedHeader(f"Expected GRUP tag, got {tag!r}")

    group_size = reader.read_u32("group size")
    if group_size < GRUP_HEADER_SIZE:
        raise MalformedHeader(f"Group at offset 0x{start:X} declares size {group_size} < {GRUP_HEADER_SIZE}")
    label = reader.read_bytes(4, "group label")
    group_type = reader.read_u32("group type")
    timestamp = reader.read_u16("group timestamp")
    vcs_info = reader.read_u16("group version control")
    unknown = reader.read_u32("group header")

    group = GroupRecord(
        label=label,
        group_type=group_type,
        timestamp=timestamp,
        vcs_info=vcs_info,
        unknown=unknown,
    )

    # Children are confined to the group's own byte range; an overrun is truncation
    body = reader.sub_reader(group_size - GRUP_HEADER_SIZE, "group contents")
    while not body.at_end():
        if body.peek(4) == GRUP_TYPE:
            group.children.append(_parse_group(body))
        else:
            group.children.append(_parse_record(body))

    return group


def _parse_subrecords(data: bytes) -> tuple[list[Subrecord], bytes]:
    """Parse subrecords from a flat data buffer.

    Handles the XXXX extended-size mechanism: when a subrecord's data exceeds
    65534 bytes, the file places a preceding XXXX subrecord (size=4) whose
    uint32 payload carries the real size. The actual subrecord follows and
    its own uint16 size field is ignored.

    Returns the subrecords and any trailing zero padding.
    """
    reader = ByteReader(data)
    subrecords: list[Subrecord] = []
    xxxx_size: int | None = None
    padding = b""

    while not reader.at_end():
        if reader.remaining() < SUBRECORD_HEADER_SIZE:
            tail = reader.read_bytes(reader.remaining())
            if xxxx_size is not None or tail.strip(b"\x00"):
                raise TruncatedData(f"{len(tail)} stray bytes after last subrecord")
            padding = tail
            break

        sub_type = reader.read_tag("subrecord type")
        sub_size = reader.read_u16("subrecord size")

        if sub_type == XXXX_TYPE:
            if sub_size != 4:
                raise UnknownSubrecordFraming(f"XXXX marker with size {sub_size}, expected 4")
            if xxxx_size is not None:
                raise UnknownSubrecordFraming("Two consecutive XXXX markers")
            # Metadata for the next subrecord; never emitted as a subrecord
            xxxx_size = reader.read_u32("XXXX payload")
            continue

        if xxxx_size is not None:
            sub_size = xxxx_size
            xxxx_size = None
        elif sub_size == OVERSIZE_SENTINEL:
            raise UnknownSubrecordFraming(
                f"Subrecord {sub_type!r} has size 0xFFFF without a preceding XXXX marker"
            )

        sub_data = bytearray(reader.read_bytes(sub_size, f"{sub_type.decode('ascii', 'replace')} subrecord data"))
        subrecords.append(Subrecord(type=sub_type, data=sub_data))

    if xxxx_size is not None:
        raise UnknownSubrecordFraming("XXXX marker at end of record with no following subrecord")

    return subrecords, padding
