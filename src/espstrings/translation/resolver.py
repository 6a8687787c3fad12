"""Resolve StringIDs in localized plugins to text from the string tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from espstrings.core.binary import unpack_u32
from espstrings.core.constants import StringTableKind
from espstrings.core.records import Subrecord
from espstrings.core.string_table import StringTableSet
from espstrings.translation.routing import StringRouter

logger = logging.getLogger(__name__)


def placeholder(string_id: int, kind: StringTableKind) -> str:
    """Stand-in text for a StringID no table could resolve."""
    return f"StringID_{string_id}_{kind.value}"


def read_string_id(sub: Subrecord) -> int | None:
    """StringID held by a localized subrecord; None when absent (short payload or 0)."""
    if sub.size < 4:
        return None
    string_id = unpack_u32(sub.data)
    return string_id or None


@dataclass(frozen=True)
class ResolvedString:
    string_id: int
    kind: StringTableKind
    text: str
    found: bool


@dataclass
class LocalizedResolver:
    """Looks up (routed kind, StringID) pairs; misses become placeholders."""

    router: StringRouter
    tables: StringTableSet | None = None

    def resolve(self, record_type: bytes, sub: Subrecord) -> ResolvedString | None:
        """Text for a localized subrecord, or None when it holds no string."""
        string_id = read_string_id(sub)
        if string_id is None:
            return None

        kind = self.router.route(record_type, sub.type)
        text = self.tables.get(kind, string_id) if self.tables is not None else None
        if text is None:
            logger.warning(
                "StringID %d not found in %s (%s.%s)",
                string_id, kind.value, record_type.decode("ascii", "replace"), sub.type.decode("ascii", "replace"),
            )
            return ResolvedString(string_id, kind, placeholder(string_id, kind), found=False)
        return ResolvedString(string_id, kind, text, found=True)
