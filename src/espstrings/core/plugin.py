"""Facade for loading and saving TES4 plugin files.

There is exactly one entry point per load mode. Neither looks for string
table files on its own: localized plugins get their tables passed in (see
``espstrings.loader.find_string_tables`` for discovery on disk).
"""

from __future__ import annotations

from pathlib import Path

from espstrings.core.constants import DEFAULT_LANGUAGE
from espstrings.core.errors import StringTableMissing
from espstrings.core.parser import parse_plugin
from espstrings.core.records import PluginFile
from espstrings.core.string_table import StringTableSet
from espstrings.core.writer import plugin_bytes


def load_plugin(path: str | Path, *, workers: int = 1) -> PluginFile:
    """Load and parse an ESP/ESM/ESL file from disk.

    String tables are not loaded, even when the plugin is LOCALIZED.
    """
    path = Path(path)
    with open(path, "rb") as f:
        plugin = parse_plugin(f, name=path.name, workers=workers)
    plugin.path = path
    return plugin


def load_localized_plugin(
    source: str | Path | bytes,
    string_tables: StringTableSet | None,
    *,
    name: str | None = None,
    workers: int = 1,
) -> PluginFile:
    """Load a plugin together with the string tables its StringIDs point into.

    Args:
        source: Path to the plugin, or its raw bytes.
        string_tables: Tables for the plugin's language; required.
        name: Plugin file name, used when source is bytes.

    Raises:
        StringTableMissing: string_tables is None.
        ValueError: source is bytes and no name was given.
    """
    if string_tables is None:
        raise StringTableMissing("A localized load needs a StringTableSet")

    if isinstance(source, (bytes, bytearray, memoryview)):
        if not name:
            raise ValueError("A plugin name is required when loading from bytes")
        plugin = plugin_from_bytes(source, name=name, workers=workers)
    else:
        plugin = load_plugin(source, workers=workers)
        if name:
            plugin.name = name

    plugin.string_tables = string_tables
    plugin.language = string_tables.language or DEFAULT_LANGUAGE
    return plugin


def save_plugin(plugin: PluginFile, path: str | Path) -> Path:
    """Serialize and write a PluginFile to disk.

    The output is fully built in memory before the file is opened.
    String tables are written separately (``espstrings.loader.save_string_tables``).
    """
    path = Path(path)
    data = plugin_bytes(plugin)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def plugin_to_bytes(plugin: PluginFile) -> bytes:
    """Serialize a PluginFile to bytes in memory."""
    return plugin_bytes(plugin)


def plugin_from_bytes(data: bytes | bytearray | memoryview, name: str = "", *, workers: int = 1) -> PluginFile:
    """Parse a PluginFile from raw bytes."""
    return parse_plugin(data, name=name, workers=workers)
