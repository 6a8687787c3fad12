"""Binary writer: Record tree → bytes for TES4 plugin files."""

from __future__ import annotations

import logging
import struct
from typing import BinaryIO

from espstrings.core.binary import pack_u16, pack_u32
from espstrings.core.compression import compress_record_data
from espstrings.core.constants import (
    GRUP_HEADER_SIZE,
    GRUP_TYPE,
    MAX_SUBRECORD_SIZE,
    XXXX_FOLLOWER_SIZE,
    XXXX_TYPE,
)
from espstrings.core.errors import EspError
from espstrings.core.records import GroupRecord, PluginFile, Record, Subrecord

logger = logging.getLogger(__name__)

_RECORD_HEADER = struct.Struct("<4sIII4H")
_GROUP_HEADER = struct.Struct("<4sI4sIHHI")


def plugin_bytes(plugin: PluginFile) -> bytes:
    """Serialize a PluginFile; the whole output is built in memory first."""
    out = bytearray()
    _write_record(plugin.header, out)
    for group in plugin.groups:
        _write_group(group, out)
    return bytes(out)


def write_plugin(plugin: PluginFile, stream: BinaryIO) -> None:
    """Serialize a PluginFile to a binary stream."""
    stream.write(plugin_bytes(plugin))


def record_bytes(record: Record) -> bytes:
    out = bytearray()
    _write_record(record, out)
    return bytes(out)


def group_bytes(group: GroupRecord) -> bytes:
    out = bytearray()
    _write_group(group, out)
    return bytes(out)


def serialize_subrecord(sub: Subrecord) -> bytes:
    """Frame one subrecord, emitting an XXXX marker for payloads over 65534 bytes.

    The real subrecord after the marker carries a size field of 0.
    """
    if sub.size > MAX_SUBRECORD_SIZE:
        return b"".join((
            XXXX_TYPE, pack_u16(4), pack_u32(sub.size),
            sub.type, pack_u16(XXXX_FOLLOWER_SIZE), bytes(sub.data),
        ))
    return sub.type + pack_u16(sub.size) + bytes(sub.data)


def _serialize_subrecords(record: Record) -> bytes:
    """Serialize all subrecords of a record to bytes, padding included."""
    return b"".join(serialize_subrecord(sub) for sub in record.subrecords) + record.padding


def _record_payload(record: Record) -> bytes:
    """Data region of a record: the retained original if untouched, else rebuilt."""
    if not record.modified and record.original_data is not None:
        return record.original_data
    body = _serialize_subrecords(record)
    if record.is_compressed:
        logger.debug("Recompressing %s 0x%08X", record.type.decode("ascii", "replace"), record.form_id)
        try:
            return compress_record_data(body)
        except EspError as e:
            e.with_context(record.type, record.form_id)
            raise
    return body


def _write_record(record: Record, out: bytearray) -> None:
    """Append a single record, recalculating its data size."""
    payload = _record_payload(record)
    out += _RECORD_HEADER.pack(
        record.type,
        len(payload),
        record.flags,
        record.form_id,
        record.timestamp,
        record.vcs_info,
        record.internal_version,
        record.unknown,
    )
    out += payload


def _write_group(group: GroupRecord, out: bytearray) -> None:
    """Append a GRUP and all children, recalculating group_size."""
    # Reserve the header, serialize children after it, then patch the size in
    start = len(out)
    out += bytes(GRUP_HEADER_SIZE)
    for child in group.children:
        if isinstance(child, GroupRecord):
            _write_group(child, out)
        else:
            _write_record(child, out)

    group_size = len(out) - start
    _GROUP_HEADER.pack_into(
        out,
        start,
        GRUP_TYPE,
        group_size,
        group.label,
        group.group_type,
        group.timestamp,
        group.vcs_info,
        group.unknown,
    )
