"""
CSV exporter — Writes report rows with one column per enabled field.
"""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Sequence

from ..models import Column


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def export_csv(
    rows: Iterable[Any],
    columns: Sequence[Column],
    output_dir: Path,
    report_name: str,
    run_id: str,
) -> Path:
    """
    Write report rows to CSV. Headers are the column keys.

    Returns:
        Path to the created CSV file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"{report_name}_{run_id}.csv"

    with open(filepath, "w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(fh, fieldnames=[c.key for c in columns])
        writer.writeheader()
        for row in rows:
            writer.writerow({k: _csv_value(v) for k, v in row.project(columns).items()})

    return filepath
