"""
Manager Relationship Analyzer
Lists each user alongside their directory manager.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ..config import ManagerReportOptions
from ..models import Column, ManagerRow

logger = logging.getLogger("stale_account_report.analyzers.managers")

MANAGER_COLUMNS = [
    Column("displayName", "Display Name"),
    Column("userPrincipalName", "User Principal Name"),
    Column("jobTitle", "Job Title"),
    Column("department", "Department"),
    Column("managerDisplayName", "Manager"),
    Column("managerUserPrincipalName", "Manager UPN"),
]


def _keep(user: Mapping[str, Any], options: ManagerReportOptions) -> bool:
    if options.exclude_guests and (user.get("userType") or "Member").lower() != "member":
        return False
    if options.exclude_disabled and not user.get("accountEnabled"):
        return False
    if options.only_missing_manager and user.get("manager"):
        return False
    return True


def _to_row(user: Mapping[str, Any]) -> ManagerRow:
    manager = user.get("manager") or {}
    return ManagerRow(
        displayName=user.get("displayName") or "",
        userPrincipalName=user.get("userPrincipalName"),
        jobTitle=user.get("jobTitle"),
        department=user.get("department"),
        managerDisplayName=manager.get("displayName"),
        managerUserPrincipalName=manager.get("userPrincipalName"),
    )


def build_manager_report(
    users: Iterable[Mapping[str, Any]],
    options: ManagerReportOptions,
) -> list[ManagerRow]:
    """
    Build manager rows from users fetched with `$expand=manager`.
    Users without a manager sort first, then by manager UPN and user UPN.
    """
    rows = [_to_row(u) for u in users if _keep(u, options)]
    rows.sort(key=lambda r: (
        r.managerUserPrincipalName is not None,
        (r.managerUserPrincipalName or "").lower(),
        (r.userPrincipalName or "").lower(),
    ))
    logger.info(f"[managers] {len(rows)} users reported")
    return rows
