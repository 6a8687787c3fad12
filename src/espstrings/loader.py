"""Filesystem helpers around the core: string table discovery, saving and backups."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

from espstrings.core.constants import DEFAULT_LANGUAGE, StringTableKind
from espstrings.core.string_table import StringTableSet, parse_string_table

logger = logging.getLogger(__name__)

# Bethesda convention puts string files in a "Strings" subdirectory, but some
# mods ship them next to the plugin.
_SUBDIR_NAMES = ("strings",)


def _search_dirs(plugin_dir: Path) -> list[Path]:
    """The plugin's directory, then any strings/ subdirectory regardless of case."""
    dirs = [plugin_dir]
    if plugin_dir.is_dir():
        for child in sorted(plugin_dir.iterdir()):
            if child.is_dir() and child.name.lower() in _SUBDIR_NAMES:
                dirs.append(child)
    return dirs


def _find_file(directory: Path, file_name: str) -> Path | None:
    """Case-insensitive file lookup in one directory (exact match preferred)."""
    exact = directory / file_name
    if exact.is_file():
        return exact
    wanted = file_name.lower()
    for child in sorted(directory.iterdir()):
        if child.is_file() and child.name.lower() == wanted:
            return child
    return None


def find_string_tables(
    plugin_path: str | Path,
    language: str = DEFAULT_LANGUAGE,
) -> StringTableSet | None:
    """Load ``<stem>_<language>.STRINGS/.DLSTRINGS/.ILSTRINGS`` for a plugin.

    Directories are searched in order: next to the plugin, then its
    ``Strings``/``strings`` subdirectory. The first directory holding at
    least one table wins.

    Returns:
        The tables found, or None if no directory held any.
    """
    plugin_path = Path(plugin_path)
    stem = plugin_path.stem

    for directory in _search_dirs(plugin_path.parent):
        tables = StringTableSet(plugin_name=stem, language=language)
        for kind in StringTableKind:
            found = _find_file(directory, f"{stem}_{language}.{kind.value}")
            if found is None:
                continue
            table = parse_string_table(found.read_bytes(), kind, plugin_name=stem, language=language)
            tables.add(table)
            logger.debug("Loaded %s (%d entries)", found, len(table))
        if tables.tables:
            missing = [k.value for k in StringTableKind if k not in tables.tables]
            if missing:
                logger.warning("String tables for %s_%s not found: %s", stem, language, ", ".join(missing))
            return tables

    logger.warning("No string tables found for %s (%s)", plugin_path.name, language)
    return None


def save_string_tables(
    tables: StringTableSet,
    directory: str | Path,
    language: str | None = None,
    *,
    backup: bool = False,
) -> list[Path]:
    """Write every table in the set as ``<plugin>_<language>.<KIND>`` into directory.

    Args:
        tables: The StringTableSet to write.
        directory: Output directory (created if missing).
        language: Language suffix for output filenames; defaults to the set's.
        backup: Copy any file about to be overwritten to a timestamped backup.

    Returns:
        List of paths written.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for kind, data in tables.to_bytes().items():
        filepath = directory / tables.file_name(kind, language)
        if backup and filepath.exists():
            create_backup(filepath)
        filepath.write_bytes(data)
        written.append(filepath)
    return written


def create_backup(path: str | Path) -> Path:
    """Copy a file to ``<name>.<YYYY-mm-dd-HH-MM-SS>.bak`` beside it.

    Raises:
        FileNotFoundError: path does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cannot back up missing file: {path}")
    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    backup_path = path.with_name(f"{path.name}.{timestamp}.bak")
    shutil.copy2(path, backup_path)
    logger.info("Backed up %s to %s", path.name, backup_path.name)
    return backup_path
