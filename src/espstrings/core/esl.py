"""Renumber a plugin's own FormIDs into the light master (ESL) address space."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from espstrings.core.binary import pack_u32, unpack_u32
from espstrings.core.constants import (
    FORMID_LABEL_GROUPS,
    LIGHT_MASTER_CAPACITY,
    LIGHT_MASTER_SENTINEL,
    RecordFlag,
)
from espstrings.core.errors import CapacityExceeded
from espstrings.core.records import GroupRecord, PluginFile, Record

logger = logging.getLogger(__name__)

ANY_RECORD = b"*"


@dataclass
class FormIdFields:
    """Which subrecords hold FormIDs, per record type.

    Each layout is either None (the whole payload is a u32 array) or the byte
    offsets of each FormID in the payload. The ``*`` record type applies to
    every record; a record-specific entry overrides it for the same
    subrecord type.
    """

    layouts: dict[bytes, dict[bytes, tuple[int, ...] | None]] = field(default_factory=dict)

    def layout(self, record_type: bytes, subrecord_type: bytes) -> tuple[bool, tuple[int, ...] | None]:
        """Return (known, offsets) for a subrecord."""
        for key in (record_type, ANY_RECORD):
            subs = self.layouts.get(key)
            if subs is not None and subrecord_type in subs:
                return True, subs[subrecord_type]
        return False, None

    def offsets(self, record_type: bytes, subrecord_type: bytes, size: int) -> list[int]:
        """Byte offsets of every FormID in a payload of the given size."""
        known, layout = self.layout(record_type, subrecord_type)
        if not known:
            return []
        if layout is None:
            return list(range(0, size - size % 4, 4))
        return [off for off in layout if off + 4 <= size]

    @classmethod
    def from_dict(cls, data: dict) -> FormIdFields:
        """Build from ``{record_type: {subrecord_type: "array" | [offsets]}}``.

        Raises:
            ValueError: A record entry is not a table, or a layout is neither
                "array" nor a list of integer offsets.
        """
        layouts: dict[bytes, dict[bytes, tuple[int, ...] | None]] = {}
        for rec, subs in data.items():
            if not isinstance(subs, dict):
                raise ValueError(f"formids.{rec} must be a table")
            table = layouts.setdefault(rec.encode("ascii"), {})
            for sub, layout in subs.items():
                if layout == "array":
                    table[sub.encode("ascii")] = None
                elif isinstance(layout, list) and all(isinstance(o, int) for o in layout):
                    table[sub.encode("ascii")] = tuple(layout)
                else:
                    raise ValueError(f"formids.{rec}.{sub}: expected \"array\" or a list of offsets")
        return cls(layouts=layouts)

    @classmethod
    def from_toml(cls, path: str | Path) -> FormIdFields:
        """Load a field table from a TOML file.

        Expected format:
            [formids."*"]
            KWDA = "array"

            [formids.LVLI]
            LVLO = [4]
        """
        path = Path(path)
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.from_dict(data.get("formids", {}))

    @classmethod
    def default(cls) -> FormIdFields:
        """The field table shipped with the package."""
        from importlib.resources import files

        raw = files("espstrings.data").joinpath("formid_fields.toml").read_text(encoding="utf-8")
        return cls.from_dict(tomllib.loads(raw).get("formids", {}))


def light_form_id(seq: int, old_form_id: int) -> int:
    """Light master FormID for the seq-th owned record, keeping the low 12 bits."""
    return (LIGHT_MASTER_SENTINEL << 24) | (seq << 12) | (old_form_id & 0xFFF)


def owned_records(plugin: PluginFile) -> list[Record]:
    """Records defined by this plugin (master index past the master list), in tree order."""
    master_count = len(plugin.masters)
    return [r for r in plugin.iter_records() if (r.form_id >> 24) >= master_count]


def eslify(plugin: PluginFile, fields: FormIdFields | None = None) -> dict[int, int]:
    """Renumber owned records into the light master range and flag the plugin as ESL.

    Pass 1 assigns new IDs; if there are more owned records than the light
    master range holds, CapacityExceeded is raised before anything changes.
    Pass 2 rewrites record FormIDs, FormID group labels and FormID-valued
    subrecords through the old→new map. Without a field table only record
    FormIDs and group labels change.

    Returns:
        The old→new FormID map.
    """
    owned = owned_records(plugin)
    if len(owned) > LIGHT_MASTER_CAPACITY:
        raise CapacityExceeded(
            f"{len(owned)} owned records, a light master holds at most {LIGHT_MASTER_CAPACITY}"
        )

    remap: dict[int, int] = {}
    for seq, record in enumerate(owned):
        # A FormID defined twice keeps its first assignment
        remap.setdefault(record.form_id, light_form_id(seq, record.form_id))

    if fields is None:
        fields = FormIdFields()

    rewritten = 0
    for group in plugin.groups:
        rewritten += _remap_group(group, remap, fields)
    rewritten += _remap_subrecords(plugin.header, remap, fields)

    plugin.header.flags |= RecordFlag.LIGHT_MASTER
    logger.info("Renumbered %d records, rewrote %d references", len(remap), rewritten)
    return remap


def _remap_group(group: GroupRecord, remap: dict[int, int], fields: FormIdFields) -> int:
    rewritten = 0
    if group.group_type in FORMID_LABEL_GROUPS:
        parent = unpack_u32(group.label)
        if parent in remap:
            group.label = pack_u32(remap[parent])
    for child in group.children:
        if isinstance(child, GroupRecord):
            rewritten += _remap_group(child, remap, fields)
        else:
            if child.form_id in remap:
                # Header-only change: the retained data region stays valid
                child.form_id = remap[child.form_id]
            rewritten += _remap_subrecords(child, remap, fields)
    return rewritten


def _remap_subrecords(record: Record, remap: dict[int, int], fields: FormIdFields) -> int:
    """Rewrite FormID values inside a record's subrecords; returns how many changed."""
    changed = 0
    for sub in record.subrecords:
        for off in fields.offsets(record.type, sub.type, sub.size):
            value = unpack_u32(sub.data, off)
            if value in remap:
                sub.data[off : off + 4] = pack_u32(remap[value])
                changed += 1
    if changed:
        record.mark_modified()
    return changed
