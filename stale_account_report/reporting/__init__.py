"""Reporting package — table, CSV and JSON output."""

from .console import print_table, render_table
from .csv_export import export_csv
from .json_export import export_json

__all__ = [
    "print_table",
    "render_table",
    "export_csv",
    "export_json",
]
