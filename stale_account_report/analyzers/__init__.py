from .stale_accounts import (
    StaleAccountFilter,
    StaleAccountReport,
    build_columns,
    build_stale_report,
    filter_stale_accounts,
    resolve_license_names,
)
from .managers import MANAGER_COLUMNS, build_manager_report

__all__ = [
    "StaleAccountFilter",
    "StaleAccountReport",
    "build_columns",
    "build_stale_report",
    "filter_stale_accounts",
    "resolve_license_names",
    "MANAGER_COLUMNS",
    "build_manager_report",
]
