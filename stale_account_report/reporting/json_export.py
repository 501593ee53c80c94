"""
JSON exporter — Produces the full report payload with run metadata.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .. import __version__
from ..models import Column


def export_json(
    rows: Iterable[Any],
    columns: Sequence[Column],
    output_dir: Path,
    report_name: str,
    run_id: str,
    summary: Optional[dict] = None,
) -> Path:
    """
    Write report rows and summary to a JSON file.

    Returns:
        Path to the created JSON file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": {
            "tool": "Stale Account Report",
            "version": __version__,
            "report": report_name,
            "run_id": run_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": "READ-ONLY",
        },
        "summary": summary or {},
        "columns": [{"key": c.key, "header": c.header} for c in columns],
        "rows": [row.project(columns) for row in rows],
    }

    filepath = output_dir / f"{report_name}_{run_id}.json"
    with open(filepath, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=_json_default, ensure_ascii=False)

    return filepath


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
