"""Extract translatable strings from a parsed plugin file."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from espstrings.core.binary import decode_zstring
from espstrings.core.records import GroupRecord, PluginFile, Record, Subrecord
from espstrings.translation.resolver import LocalizedResolver
from espstrings.translation.routing import StringRouter

_RE_IDENTIFIER = re.compile(r"^[A-Za-z0-9]+$")

# Markup fragments that are never player text, and markers that always are
_BLACKLIST = frozenset({"<p>"})
_WHITELIST = ("<Alias",)

TranslationKey = tuple[str, str, str, str, int]


@dataclass
class ExtractedString:
    """One translatable string, carrying everything needed to match it back.

    form_id is ``<8-hex>|<origin file>``; index is the occurrence of this
    subrecord type within its record.
    """

    editor_id: str | None
    form_id: str
    text: str
    record_type: str
    subrecord_type: str
    index: int | None = None

    @property
    def key(self) -> TranslationKey:
        return translation_key(self.editor_id, self.form_id, self.record_type, self.subrecord_type, self.index)

    def to_dict(self) -> dict[str, Any]:
        """JSON shape; editor_id and index are left out when absent."""
        data: dict[str, Any] = {}
        if self.editor_id is not None:
            data["editor_id"] = self.editor_id
        data["form_id"] = self.form_id
        data["text"] = self.text
        data["record_type"] = self.record_type
        data["subrecord_type"] = self.subrecord_type
        if self.index is not None:
            data["index"] = self.index
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractedString:
        missing = [k for k in ("form_id", "text", "record_type", "subrecord_type") if k not in data]
        if missing:
            raise ValueError(f"Translation entry is missing {', '.join(missing)}: {data!r}")
        index = data.get("index")
        return cls(
            editor_id=data.get("editor_id"),
            form_id=str(data["form_id"]),
            text=str(data["text"]),
            record_type=str(data["record_type"]),
            subrecord_type=str(data["subrecord_type"]),
            index=int(index) if index is not None else None,
        )


def translation_key(
    editor_id: str | None,
    form_id: str,
    record_type: str,
    subrecord_type: str,
    index: int | None,
) -> TranslationKey:
    """The 5-tuple both extraction and application match on."""
    return (editor_id or "", form_id, record_type, subrecord_type, index or 0)


def _is_camel_case(text: str) -> bool:
    if len(text) < 3 or not _RE_IDENTIFIER.match(text):
        return False
    return any(c.isupper() for c in text[2:]) and not text.isupper()


def _is_snake_case(text: str) -> bool:
    return " " not in text and "_" in text


def is_valid_string(text: str) -> bool:
    """Heuristic: return True if *text* looks like player-facing text.

    Rejects blanks, control characters, and identifier-shaped strings
    (``CamelCaseVariable``, ``snake_case_var``) that are editor IDs or
    script names leaking into text fields. Proper nouns like ``RadAway``
    are false positives; ``--unfiltered`` keeps them.
    """
    text = text.strip()
    if not text or text in _BLACKLIST:
        return False
    if any(marker in text for marker in _WHITELIST):
        return True
    if _is_camel_case(text) or _is_snake_case(text):
        return False
    return all(unicodedata.category(c) != "Cc" or c.isspace() for c in text)


def walk_translatable(plugin: PluginFile, router: StringRouter) -> Iterator[tuple[Record, Subrecord, int]]:
    """Yield (record, subrecord, occurrence index) for every translatable subrecord.

    Header first, then groups in tree order. The index counts subrecords of
    the same type within one record, so a record with two FULLs yields 0 and 1.
    Extraction and application both walk through here.
    """
    yield from _walk_record(plugin.header, router)
    for group in plugin.groups:
        yield from _walk_group(group, router)


def _walk_group(group: GroupRecord, router: StringRouter) -> Iterator[tuple[Record, Subrecord, int]]:
    for child in group.children:
        if isinstance(child, GroupRecord):
            yield from _walk_group(child, router)
        else:
            yield from _walk_record(child, router)


def _walk_record(record: Record, router: StringRouter) -> Iterator[tuple[Record, Subrecord, int]]:
    wanted = router.subrecord_types(record.type)
    if not wanted:
        return
    sub_type_counter: dict[bytes, int] = {}
    for sub in record.subrecords:
        if sub.type not in wanted:
            continue
        idx = sub_type_counter.get(sub.type, 0)
        sub_type_counter[sub.type] = idx + 1
        yield record, sub, idx


def extract_strings(
    plugin: PluginFile,
    router: StringRouter,
    *,
    unfiltered: bool = False,
) -> list[ExtractedString]:
    """Walk the plugin tree and extract all translatable strings.

    Localized plugins resolve StringIDs through ``plugin.string_tables``;
    unresolved IDs come back as ``StringID_<id>_<KIND>`` placeholders and are
    never filtered out. StringID 0 produces nothing.
    """
    masters = plugin.masters
    resolver = LocalizedResolver(router, plugin.string_tables) if plugin.is_localized else None
    results: list[ExtractedString] = []

    for record, sub, idx in walk_translatable(plugin, router):
        if resolver is not None:
            resolved = resolver.resolve(record.type, sub)
            if resolved is None:
                continue
            text = resolved.text
            keep = unfiltered or not resolved.found or is_valid_string(text)
        else:
            text = decode_zstring(sub.data).content
            keep = unfiltered or is_valid_string(text)

        if not keep:
            continue

        results.append(
            ExtractedString(
                editor_id=record.editor_id,
                form_id=plugin.format_form_id(record.form_id, masters),
                text=text,
                record_type=record.type.decode("ascii", "replace"),
                subrecord_type=sub.type.decode("ascii", "replace"),
                index=idx,
            )
        )

    return results
