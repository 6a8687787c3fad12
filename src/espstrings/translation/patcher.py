"""Apply translations back to the plugin's subrecord data or string tables."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from espstrings.core.binary import decode_zstring
from espstrings.core.records import PluginFile, Record
from espstrings.translation.extractor import ExtractedString, TranslationKey, translation_key, walk_translatable
from espstrings.translation.resolver import read_string_id
from espstrings.translation.routing import StringRouter

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of apply_translations.

    applied counts distinct translation keys that matched at least one
    subrecord; unmatched_keys lists the rest in input order.
    """

    applied: int = 0
    unmatched: int = 0
    unmatched_keys: list[TranslationKey] = field(default_factory=list)
    # Subrecords or table entries whose text actually changed
    changed: int = 0


def apply_translations(
    plugin: PluginFile,
    translations: Iterable[ExtractedString],
    router: StringRouter,
) -> ApplyResult:
    """Mutate subrecord data or string table entries with translated text.

    Args:
        plugin: Parsed plugin. Localized plugins must carry string_tables.
        translations: Entries keyed by (editor ID, FormID, record type,
            subrecord type, index); for duplicate keys the last one wins.
        router: Same routing table the strings were extracted with.

    Returns:
        ApplyResult with applied/unmatched counts.
    """
    wanted: dict[TranslationKey, str] = {}
    for entry in translations:
        wanted[entry.key] = entry.text

    masters = plugin.masters
    tables = plugin.string_tables if plugin.is_localized else None
    matched: set[TranslationKey] = set()
    result = ApplyResult()

    current: Record | None = None
    editor_id: str | None = None
    form_id = ""

    for record, sub, idx in walk_translatable(plugin, router):
        if record is not current:
            current = record
            editor_id = record.editor_id
            form_id = plugin.format_form_id(record.form_id, masters)

        key = translation_key(
            editor_id, form_id, record.type.decode("ascii", "replace"), sub.type.decode("ascii", "replace"), idx
        )
        text = wanted.get(key)
        if text is None:
            continue

        if plugin.is_localized:
            string_id = read_string_id(sub)
            if string_id is None or tables is None:
                continue
            kind = router.route(record.type, sub.type)
            if tables.get(kind, string_id) == text:
                if tables.table(kind) is not None:
                    matched.add(key)
                continue
            if tables.set_text(kind, string_id, text):
                matched.add(key)
                result.changed += 1
        else:
            matched.add(key)
            if decode_zstring(sub.data).content == text:
                continue
            sub.encode_string(text)
            record.mark_modified()
            result.changed += 1

    result.applied = len(matched)
    result.unmatched_keys = [k for k in wanted if k not in matched]
    result.unmatched = len(result.unmatched_keys)

    if result.unmatched:
        logger.warning("%d of %d translations matched nothing", result.unmatched, len(wanted))
    if plugin.is_localized and tables is None and wanted:
        logger.warning("Localized plugin %s has no string tables; nothing was applied", plugin.name or "<unnamed>")
    return result
