"""
Console table renderer for report rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Sequence

from ..models import Column

NEVER = "Never"
MAX_CELL_WIDTH = 48


def format_cell(key: str, value: Any) -> str:
    """Human-readable cell text."""
    if value is None:
        return NEVER if key.endswith("SignIn") else ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, bool):
        return "Yes" if value else "No"
    text = str(value)
    if len(text) > MAX_CELL_WIDTH:
        text = text[:MAX_CELL_WIDTH - 1] + "…"
    return text


def render_table(rows: Iterable[Any], columns: Sequence[Column]) -> str:
    """Render rows as a fixed-width text table."""
    body = [
        [format_cell(c.key, value) for c, value in zip(columns, row.project(columns).values())]
        for row in rows
    ]
    widths = [len(c.header) for c in columns]
    for cells in body:
        widths = [max(w, len(cell)) for w, cell in zip(widths, cells)]

    lines = [
        "  " + " ".join(f"{c.header:<{w}s}" for c, w in zip(columns, widths)),
        "  " + " ".join("─" * w for w in widths),
    ]
    for cells in body:
        lines.append("  " + " ".join(f"{cell:<{w}s}" for cell, w in zip(cells, widths)))
    return "\n".join(lines)


def print_table(rows: Sequence[Any], columns: Sequence[Column]) -> None:
    if not rows:
        print("  (no matching accounts)")
        return
    print(render_table(rows, columns))
