"""Plugin statistics report data model."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from espstrings.core.records import PluginFile
from espstrings.translation.extractor import extract_strings
from espstrings.translation.routing import StringRouter


def plugin_type(plugin: PluginFile) -> str:
    """ESP/ESM/ESL from the file extension, falling back to the header flags."""
    suffix = Path(plugin.name).suffix.lower().lstrip(".")
    if suffix in ("esp", "esm", "esl"):
        return suffix.upper()
    if plugin.is_light_master:
        return "ESL"
    return "ESM" if plugin.is_master else "ESP"


@dataclass
class PluginReport:
    """Collects statistics about one plugin, plus the outcome of an operation on it."""

    name: str = ""
    plugin_type: str = ""
    language: str = ""
    is_master: bool = False
    is_light_master: bool = False
    is_localized: bool = False
    masters: list[str] = field(default_factory=list)

    group_count: int = 0
    record_count: int = 0
    string_count: int = 0
    string_table_entries: int = 0
    record_types: dict[str, int] = field(default_factory=dict)

    output_file: str = ""
    strings_applied: int = 0
    strings_unmatched: int = 0

    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    errors: list[str] = field(default_factory=list)

    @property
    def master_count(self) -> int:
        return len(self.masters)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def finish(self) -> None:
        self.finished_at = datetime.now()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "plugin_type": self.plugin_type,
            "language": self.language,
            "is_master": self.is_master,
            "is_light_master": self.is_light_master,
            "is_localized": self.is_localized,
            "master_count": self.master_count,
            "masters": self.masters,
            "group_count": self.group_count,
            "record_count": self.record_count,
            "string_count": self.string_count,
            "string_table_entries": self.string_table_entries,
            "record_types": self.record_types,
            "output_file": self.output_file,
            "strings_applied": self.strings_applied,
            "strings_unmatched": self.strings_unmatched,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }


def build_report(plugin: PluginFile, router: StringRouter) -> PluginReport:
    """Gather statistics for a parsed plugin (string count uses the default filter)."""
    record_types = Counter(r.type.decode("ascii", "replace") for r in plugin.iter_records())
    return PluginReport(
        name=plugin.name,
        plugin_type=plugin_type(plugin),
        language=plugin.language,
        is_master=plugin.is_master,
        is_light_master=plugin.is_light_master,
        is_localized=plugin.is_localized,
        masters=plugin.masters,
        group_count=plugin.count_groups(),
        record_count=plugin.count_records(),
        string_count=len(extract_strings(plugin, router)),
        string_table_entries=plugin.string_tables.total_entries() if plugin.string_tables else 0,
        record_types=dict(sorted(record_types.items())),
    )
