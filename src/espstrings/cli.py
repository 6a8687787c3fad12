"""CLI interface for espstrings using Typer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from espstrings import __version__
from espstrings.core.constants import DEFAULT_LANGUAGE, StringTableKind
from espstrings.core.errors import EspError, StringTableMissing
from espstrings.core.records import PluginFile
from espstrings.translation.routing import StringRouter

app = typer.Typer(
    name="espstrings",
    help="Extract and reinject translatable text in Bethesda ESP/ESM/ESL plugins.",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

_verbose = False
_quiet = False
_workers = 1


def _print(msg: str, *, verbose_only: bool = False) -> None:
    """Print respecting --verbose/--quiet flags. Errors bypass --quiet."""
    if _quiet:
        return
    if verbose_only and not _verbose:
        return
    console.print(msg)


def _fail(msg: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(msg)}")
    raise typer.Exit(1)


def _require_file(file: Path) -> None:
    if not file.exists():
        _fail(f"File not found: {file}")


def _router(routes: Path | None) -> StringRouter:
    if routes is None:
        return StringRouter.default()
    _require_file(routes)
    try:
        return StringRouter.from_toml(routes)
    except ValueError as e:
        _fail(f"{routes.name}: {e}")


def _load(file: Path, lang: str, *, require_tables: bool = False) -> PluginFile:
    """Parse a plugin and, when it is localized, attach its string tables."""
    from espstrings.core.plugin import load_plugin
    from espstrings.loader import find_string_tables

    _require_file(file)
    try:
        with err_console.status("Parsing..."):
            plugin = load_plugin(file, workers=_workers)
        if plugin.is_localized:
            tables = find_string_tables(file, lang)
            if tables is None:
                if require_tables:
                    raise StringTableMissing(f"no {lang} string tables found next to the plugin")
                if not _quiet:
                    err_console.print(f"[yellow]Warning:[/yellow] no {lang} string tables found; StringIDs stay unresolved")
            plugin.string_tables = tables
            plugin.language = lang
    except EspError as e:
        _fail(f"{file.name}: {e}")
    return plugin


def version_callback(value: bool) -> None:
    if value:
        console.print(f"espstrings {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors.",
    ),
    workers: int = typer.Option(
        1, "--workers", "-j", min=1,
        help="Threads used to parse top-level groups.",
    ),
) -> None:
    """espstrings: translatable text in Bethesda plugin files and string tables."""
    global _verbose, _quiet, _workers
    _verbose = verbose
    _quiet = quiet
    _workers = workers
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def scan(
    file: Path = typer.Argument(..., help="Path to the ESP/ESM/ESL file to scan."),
    lang: str = typer.Option(DEFAULT_LANGUAGE, "--lang", "-l", help="String table language."),
    routes: Path | None = typer.Option(None, "--routes", help="TOML routing table."),
    unfiltered: bool = typer.Option(False, "--unfiltered", help="Keep identifier-like strings."),
    limit: int = typer.Option(0, "--limit", "-n", help="Show at most N rows (0 = all)."),
) -> None:
    """Scan a plugin and list translatable strings."""
    from espstrings.translation.extractor import extract_strings

    router = _router(routes)
    plugin = _load(file, lang)
    strings = extract_strings(plugin, router, unfiltered=unfiltered)

    _print(f"Localized: [cyan]{plugin.is_localized}[/cyan]  Masters: [cyan]{len(plugin.masters)}[/cyan]")
    _print(f"Found [green]{len(strings)}[/green] translatable strings\n")

    table = Table(title=f"Translatable strings in {file.name}")
    table.add_column("FormID", style="dim")
    table.add_column("Record")
    table.add_column("Sub")
    table.add_column("#", justify="right")
    table.add_column("EDID", style="dim")
    table.add_column("Text")

    shown = strings[:limit] if limit > 0 else strings
    for s in shown:
        table.add_row(
            escape(s.form_id),
            s.record_type,
            s.subrecord_type,
            str(s.index or 0),
            escape(s.editor_id[:20]) if s.editor_id else "",
            escape(s.text[:60]),
        )

    console.print(table)


@app.command()
def extract(
    file: Path = typer.Argument(..., help="Path to the ESP/ESM/ESL file."),
    output: Path | None = typer.Option(None, "--output", "-o", help="JSON output path (default: stdout)."),
    lang: str = typer.Option(DEFAULT_LANGUAGE, "--lang", "-l", help="String table language."),
    routes: Path | None = typer.Option(None, "--routes", help="TOML routing table."),
    unfiltered: bool = typer.Option(False, "--unfiltered", help="Keep identifier-like strings."),
) -> None:
    """Export translatable strings as JSON."""
    from espstrings.translation.extractor import extract_strings
    from espstrings.translation.jsonio import save_strings, strings_to_json

    router = _router(routes)
    plugin = _load(file, lang)
    strings = extract_strings(plugin, router, unfiltered=unfiltered)

    if output is None:
        typer.echo(strings_to_json(strings))
        return
    save_strings(strings, output)
    _print(f"Extracted [green]{len(strings)}[/green] strings to [cyan]{output}[/cyan]")


@app.command()
def apply(
    file: Path = typer.Argument(..., help="Path to the ESP/ESM/ESL file."),
    translations: Path = typer.Argument(..., help="JSON file of translated strings."),
    output: Path | None = typer.Option(
        None, "--output", "-o",
        help="Output plugin path (default: overwrite input). Localized plugins write string tables beside it.",
    ),
    lang: str = typer.Option(DEFAULT_LANGUAGE, "--lang", "-l", help="Language of the source string tables."),
    out_lang: str | None = typer.Option(None, "--out-lang", help="Language suffix for written string tables."),
    routes: Path | None = typer.Option(None, "--routes", help="TOML routing table."),
    backup: bool = typer.Option(True, "--backup/--no-backup", help="Back up files before overwriting."),
    report: Path | None = typer.Option(None, "--report", help="Save report to file (json/md/csv)."),
) -> None:
    """Apply translations to a plugin (or to its string tables if localized)."""
    from espstrings.core.plugin import save_plugin
    from espstrings.loader import create_backup, save_string_tables
    from espstrings.reporting.formatters import save_report
    from espstrings.reporting.report import build_report
    from espstrings.translation.jsonio import load_strings
    from espstrings.translation.patcher import apply_translations

    _require_file(translations)
    router = _router(routes)
    plugin = _load(file, lang, require_tables=True)
    try:
        entries = load_strings(translations)
    except ValueError as e:
        _fail(f"{translations.name}: {e}")

    result = apply_translations(plugin, entries, router)
    _print(f"Applied [green]{result.applied}[/green], unmatched [yellow]{result.unmatched}[/yellow]")
    for key in result.unmatched_keys:
        _print(f"  [dim]unmatched:[/dim] {escape(' / '.join(str(part) for part in key))}", verbose_only=True)

    target = output or file
    localized = plugin.is_localized and plugin.string_tables is not None
    try:
        if localized:
            tables = plugin.string_tables
            tables.plugin_name = target.stem
            out_dir = target.parent / "Strings"
            written = save_string_tables(tables, out_dir, out_lang or lang, backup=backup)
            for path in written:
                _print(f"Wrote [cyan]{path}[/cyan]")
        # A localized plugin is unchanged, but the tables name the target
        if not localized or target.resolve() != file.resolve():
            if backup and target.exists():
                create_backup(target)
            save_plugin(plugin, target)
            _print(f"Wrote [cyan]{target}[/cyan]")
    except EspError as e:
        _fail(f"{file.name}: {e}")

    if report:
        rep = build_report(plugin, router)
        rep.output_file = str(target)
        rep.strings_applied = result.applied
        rep.strings_unmatched = result.unmatched
        rep.errors = [f"unmatched: {' / '.join(str(part) for part in key)}" for key in result.unmatched_keys]
        rep.finish()
        save_report(rep, report)
        _print(f"Report saved: [cyan]{report}[/cyan]")


@app.command()
def eslify(
    file: Path = typer.Argument(..., help="Path to the plugin to convert."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output path (default: <stem>.esl)."),
    fields: Path | None = typer.Option(None, "--fields", help="TOML table of FormID subrecords."),
    backup: bool = typer.Option(True, "--backup/--no-backup", help="Back up the output if it exists."),
) -> None:
    """Renumber the plugin's own FormIDs into the light master range."""
    from espstrings.core.esl import FormIdFields, eslify as eslify_plugin
    from espstrings.core.plugin import load_plugin, save_plugin
    from espstrings.loader import create_backup

    _require_file(file)
    if fields is None:
        field_table = FormIdFields.default()
    else:
        _require_file(fields)
        try:
            field_table = FormIdFields.from_toml(fields)
        except ValueError as e:
            _fail(f"{fields.name}: {e}")
    target = output or file.with_suffix(".esl")

    try:
        plugin = load_plugin(file, workers=_workers)
        remap = eslify_plugin(plugin, field_table)
        if backup and target.exists():
            create_backup(target)
        save_plugin(plugin, target)
    except EspError as e:
        _fail(f"{file.name}: {e}")

    _print(f"Renumbered [green]{len(remap)}[/green] records")
    _print(f"Wrote [cyan]{target}[/cyan]")


@app.command()
def strings(
    file: Path = typer.Argument(..., help="A .STRINGS, .DLSTRINGS or .ILSTRINGS file."),
    output: Path | None = typer.Option(None, "--output", "-o", help="JSON output path (default: table on screen)."),
) -> None:
    """Dump a string table."""
    from espstrings.core.string_table import parse_string_table

    _require_file(file)
    try:
        kind = StringTableKind.from_extension(file.suffix)
    except ValueError:
        _fail(f"Not a string table extension: {file.suffix}")
    try:
        table = parse_string_table(file.read_bytes(), kind)
    except EspError as e:
        _fail(f"{file.name}: {e}")

    rows = [{"id": sid, "text": table.entries[sid].text} for sid in table.ids()]
    if output is not None:
        output.write_text(json.dumps(rows, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        _print(f"Wrote [green]{len(rows)}[/green] entries to [cyan]{output}[/cyan]")
        return

    out = Table(title=f"{file.name} ({kind.value}, {len(rows)} entries)")
    out.add_column("ID", justify="right", style="dim")
    out.add_column("Text")
    for row in rows:
        out.add_row(str(row["id"]), escape(row["text"][:80]))
    console.print(out)


@app.command()
def stats(
    file: Path = typer.Argument(..., help="Path to the ESP/ESM/ESL file."),
    lang: str = typer.Option(DEFAULT_LANGUAGE, "--lang", "-l", help="String table language."),
    routes: Path | None = typer.Option(None, "--routes", help="TOML routing table."),
    report: Path | None = typer.Option(None, "--report", help="Save report to file (json/md/csv)."),
) -> None:
    """Show plugin statistics."""
    from espstrings.reporting.formatters import save_report
    from espstrings.reporting.report import build_report

    router = _router(routes)
    plugin = _load(file, lang)
    rep = build_report(plugin, router)
    rep.finish()

    summary = Table(title=f"{file.name}", show_header=False)
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    summary.add_row("Type", rep.plugin_type)
    summary.add_row("Master", str(rep.is_master))
    summary.add_row("Light master", str(rep.is_light_master))
    summary.add_row("Localized", str(rep.is_localized))
    summary.add_row("Masters", str(rep.master_count))
    summary.add_row("Groups", str(rep.group_count))
    summary.add_row("Records", str(rep.record_count))
    summary.add_row("Strings", f"[green]{rep.string_count}[/green]")
    if rep.is_localized:
        summary.add_row("String table entries", str(rep.string_table_entries))
    console.print(summary)

    if report:
        save_report(rep, report)
        _print(f"Report saved: [cyan]{report}[/cyan]")


@app.command()
def verify(
    file: Path = typer.Argument(..., help="Path to the ESP/ESM/ESL file."),
) -> None:
    """Parse and rebuild a plugin, checking the output is byte-identical."""
    from espstrings.core.plugin import plugin_from_bytes, plugin_to_bytes

    _require_file(file)
    original = file.read_bytes()
    try:
        rebuilt = plugin_to_bytes(plugin_from_bytes(original, file.name, workers=_workers))
    except EspError as e:
        _fail(f"{file.name}: {e}")

    if rebuilt == original:
        _print(f"[green]OK[/green] {file.name}: {len(original)} bytes round-trip identically")
        return

    first = next(
        (i for i, (a, b) in enumerate(zip(original, rebuilt)) if a != b),
        min(len(original), len(rebuilt)),
    )
    console.print(
        f"[red]Mismatch[/red] {escape(file.name)}: first difference at offset 0x{first:X} "
        f"({len(original)} vs {len(rebuilt)} bytes)"
    )
    raise typer.Exit(1)
