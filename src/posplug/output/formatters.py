"""Rich/JSON output helpers.

Human mode prints ``OK: <op>`` followed by key-value pairs, rendering
lists of row dicts as Rich tables. JSON mode dumps the whole result.
"""

from __future__ import annotations

import json as _json
from io import StringIO
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from posplug.output.result import CommandResult


def _is_rows(value: Any) -> bool:
    return bool(value) and isinstance(value, list) and all(isinstance(v, dict) for v in value)


def _render_table(title: str, rows: list[dict[str, Any]]) -> str:
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    table = Table(title=title, title_justify="left", show_lines=False)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(_cell(row.get(column)) for column in columns))

    console = Console(file=StringIO(), no_color=True, highlight=False, width=120)
    console.print(table)
    assert isinstance(console.file, StringIO)
    return console.file.getvalue().rstrip("\n")


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (dict, list)):
        return _json.dumps(value, separators=(",", ":"))
    return str(value)


def _format_data_human(data: dict[str, Any]) -> str:
    """Format result data as indented key-value pairs and tables."""
    lines: list[str] = []
    for key, value in data.items():
        if _is_rows(value):
            lines.append(_render_table(key, value))
        elif isinstance(value, (dict, list)):
            lines.append(f"  {key}: {_json.dumps(value, separators=(',', ':'))}")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def format_result(result: CommandResult, *, json_output: bool = False) -> str:
    """Format a CommandResult for display.

    Args:
        result: The command result to format.
        json_output: If True, return JSON; otherwise return human-readable text.
    """
    if json_output:
        return result.model_dump_json(indent=2)
    if result.ok:
        parts = [f"OK: {result.op}"]
        if result.data:
            parts.append(_format_data_human(result.data))
        return "\n".join(parts)
    error_msg = result.error.message if result.error else "Unknown error"
    return f"ERROR: {result.op} - {error_msg}"
