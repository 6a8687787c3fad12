"""Output formatters for plugin reports."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from espstrings.reporting.report import PluginReport


def to_json(report: PluginReport, indent: int = 2) -> str:
    """Format report as JSON string."""
    return json.dumps(report.to_dict(), indent=indent, default=str, ensure_ascii=False)


def to_markdown(report: PluginReport) -> str:
    """Format report as Markdown."""
    lines = [
        f"# Plugin Report: {report.name}",
        "",
        "| Field | Value |",
        "|-------|-------|",
        f"| Type | {report.plugin_type} |",
        f"| Master | {report.is_master} |",
        f"| Light master | {report.is_light_master} |",
        f"| Localized | {report.is_localized} |",
        f"| Language | {report.language} |",
        "",
        "## Statistics",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Masters | {report.master_count} |",
        f"| Groups | {report.group_count} |",
        f"| Records | {report.record_count} |",
        f"| Translatable strings | {report.string_count} |",
        f"| String table entries | {report.string_table_entries} |",
    ]

    if report.output_file:
        lines.extend([
            f"| Applied | {report.strings_applied} |",
            f"| Unmatched | {report.strings_unmatched} |",
            "",
            f"Output: `{report.output_file}`",
        ])

    if report.masters:
        lines.extend(["", "## Masters", ""])
        lines.extend(f"{i}. `{m}`" for i, m in enumerate(report.masters))

    if report.record_types:
        lines.extend(["", "## Records by type", "", "| Type | Count |", "|------|-------|"])
        lines.extend(f"| {t} | {n} |" for t, n in report.record_types.items())

    if report.errors:
        lines.extend([
            "",
            "## Errors",
            "",
        ])
        for err in report.errors:
            lines.append(f"- {err}")

    return "\n".join(lines) + "\n"


def to_csv(report: PluginReport) -> str:
    """Format report as a single-row CSV."""
    output = io.StringIO()
    data = report.to_dict()
    # Flatten list and mapping columns
    data["masters"] = "; ".join(data["masters"])
    data["record_types"] = "; ".join(f"{t}={n}" for t, n in data["record_types"].items())
    data["errors"] = "; ".join(data["errors"])
    writer = csv.DictWriter(output, fieldnames=data.keys())
    writer.writeheader()
    writer.writerow(data)
    return output.getvalue()


def save_report(report: PluginReport, path: str | Path) -> None:
    """Save report to file, auto-detecting format from extension."""
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in (".md", ".markdown"):
        content = to_markdown(report)
    elif suffix == ".csv":
        content = to_csv(report)
    else:
        content = to_json(report)

    path.write_text(content, encoding="utf-8")
