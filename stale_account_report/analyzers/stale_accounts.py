"""
Stale Account Analyzer
Selects accounts with no recent interactive sign-in, applies exclusion
options, resolves license names and shapes the report rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from ..config import StaleReportOptions
from ..models import Column, RecordError, ReportRow, SkuLookup, UserRecord, parse_graph_datetime

logger = logging.getLogger("stale_account_report.analyzers.stale")

NO_LICENSES = "None"
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

BASE_COLUMNS = [
    Column("displayName", "Display Name"),
    Column("userPrincipalName", "User Principal Name"),
    Column("createdDateTime", "Created"),
    Column("lastInteractiveSignIn", "Last Interactive Sign-In"),
    Column("accountEnabled", "Enabled"),
    Column("userType", "User Type"),
]
LICENSE_DETAIL_COLUMNS = [
    Column("officeLocation", "Office"),
    Column("jobTitle", "Job Title"),
]
NON_INTERACTIVE_COLUMN = Column("lastNonInteractiveSignIn", "Last Non-Interactive Sign-In")
LICENSE_NAMES_COLUMN = Column("assignedLicenseNames", "Licenses")


def build_columns(options: StaleReportOptions) -> list[Column]:
    """Build the ordered list of enabled output columns."""
    columns = list(BASE_COLUMNS)
    if options.include_licenses:
        columns.extend(LICENSE_DETAIL_COLUMNS)
    if options.include_non_interactive:
        columns.append(NON_INTERACTIVE_COLUMN)
    if options.include_licenses:
        columns.append(LICENSE_NAMES_COLUMN)
    return columns


def resolve_license_names(sku_ids: Iterable[str], lookup: Optional[SkuLookup]) -> str:
    """Map SKU ids to display names, de-duplicated case-insensitively."""
    names: list[str] = []
    seen: set[str] = set()
    for sku_id in sku_ids:
        name = lookup.resolve(sku_id) if lookup is not None else sku_id
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        names.append(name)
    return ", ".join(names) if names else NO_LICENSES


def sort_key(record: UserRecord) -> tuple:
    """Never-signed-in first, then oldest sign-in, then oldest account, then UPN."""
    return (
        record.last_interactive_sign_in or _EARLIEST,
        record.created,
        (record.upn or "").lower(),
    )


def _checked(record: UserRecord) -> UserRecord:
    """Validate a prebuilt record's timestamps; naive values are taken as UTC."""
    stamps = {
        "created": record.created,
        "last_interactive_sign_in": record.last_interactive_sign_in,
        "last_non_interactive_sign_in": record.last_non_interactive_sign_in,
    }
    if not isinstance(record.created, datetime):
        raise RecordError(record.id, record.upn, f"malformed created: {record.created!r}")
    updates = {}
    for name, value in stamps.items():
        if value is None:
            continue
        if not isinstance(value, datetime):
            raise RecordError(record.id, record.upn, f"malformed {name}: {value!r}")
        updates[name] = parse_graph_datetime(value)
    return replace(record, **updates)


@dataclass
class StaleAccountReport:
    """Rows plus the context a renderer or summary needs."""
    rows: list[ReportRow]
    columns: list[Column]
    errors: list[RecordError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stale_cutoff: Optional[datetime] = None
    grace_cutoff: Optional[datetime] = None
    records_evaluated: int = 0


class StaleAccountFilter:
    """
    Pure in-memory filter over already-fetched user records.

    Every step returns a new list; the input sequence is never mutated.
    Per-record problems are collected in `errors` and lookup problems in
    `warnings` instead of being raised.
    """

    def __init__(
        self,
        options: StaleReportOptions,
        now: Optional[datetime] = None,
        sku_lookup: Optional[SkuLookup] = None,
    ):
        self.options = options
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self.now = now
        self.sku_lookup = sku_lookup
        self.stale_cutoff = now - timedelta(days=abs(options.stale_days))
        self.grace_cutoff = now - timedelta(days=abs(options.grace_days))
        self.columns = build_columns(options)
        self.errors: list[RecordError] = []
        self.warnings: list[str] = []

    def apply(self, records: Iterable[Union[UserRecord, Mapping[str, Any]]]) -> list[ReportRow]:
        self.errors = []
        self.warnings = []

        parsed = self._parse(records)
        eligible = [r for r in parsed if self._is_eligible(r)]
        kept = [r for r in eligible if self._passes_exclusions(r)]
        ordered = sorted(kept, key=sort_key)

        if self.options.include_licenses and not self._lookup_available():
            reason = self.sku_lookup.reason if self.sku_lookup is not None else "no lookup supplied"
            self.warnings.append(
                f"SKU names unavailable ({reason or 'unknown reason'}); showing raw SKU ids"
            )

        rows = [self._to_row(r) for r in ordered]
        logger.info(
            f"[stale] {len(rows)} of {len(parsed)} records reported "
            f"({len(self.errors)} record errors)"
        )
        return rows

    # ── Parsing ─────────────────────────────────────────────────────────────

    def _parse(self, records: Iterable[Union[UserRecord, Mapping[str, Any]]]) -> list[UserRecord]:
        parsed = []
        for raw in records:
            try:
                if isinstance(raw, UserRecord):
                    parsed.append(_checked(raw))
                elif isinstance(raw, Mapping):
                    parsed.append(UserRecord.from_graph(raw))
                else:
                    raise RecordError(None, None, f"unsupported record type {type(raw).__name__}")
            except RecordError as e:
                self.errors.append(e)
                logger.warning(f"[stale] {e}")
        return parsed

    # ── Predicates ──────────────────────────────────────────────────────────

    def _is_eligible(self, record: UserRecord) -> bool:
        if record.created > self.grace_cutoff:
            return False
        last = record.last_interactive_sign_in
        return last is None or last < self.stale_cutoff

    def _passes_exclusions(self, record: UserRecord) -> bool:
        opts = self.options
        upn = record.upn.lower() if record.upn else None

        if opts.exclude_guests and not record.is_member:
            return False
        if opts.exclude_disabled and not record.account_enabled:
            return False
        if opts.exclude_upns and upn in opts.exclude_upns:
            return False
        if opts.domains:
            domain = record.upn_domain
            if domain is None or domain.lower() not in opts.domains:
                return False
        if opts.exclude_ext_upns and (upn is None or "#ext#" in upn):
            return False
        return True

    # ── Shaping ─────────────────────────────────────────────────────────────

    def _lookup_available(self) -> bool:
        return self.sku_lookup is not None and self.sku_lookup.available

    def _to_row(self, record: UserRecord) -> ReportRow:
        row = ReportRow(
            displayName=record.display_name,
            userPrincipalName=record.upn,
            createdDateTime=record.created,
            lastInteractiveSignIn=record.last_interactive_sign_in,
            accountEnabled=record.account_enabled,
            userType=record.user_type,
            user_id=record.id,
        )
        extra: dict[str, Any] = {}
        if self.options.include_non_interactive:
            extra["lastNonInteractiveSignIn"] = record.last_non_interactive_sign_in
        if self.options.include_licenses:
            extra["officeLocation"] = record.office_location
            extra["jobTitle"] = record.job_title
            extra["assignedLicenseNames"] = resolve_license_names(
                record.assigned_sku_ids, self.sku_lookup
            )
        if not extra:
            return row
        return replace(row, **extra)


def filter_stale_accounts(
    records: Iterable[Union[UserRecord, Mapping[str, Any]]],
    options: StaleReportOptions,
    now: Optional[datetime] = None,
    sku_lookup: Optional[SkuLookup] = None,
) -> list[ReportRow]:
    """Return the sorted stale account rows for the given records."""
    return StaleAccountFilter(options, now=now, sku_lookup=sku_lookup).apply(records)


def build_stale_report(
    records: Iterable[Union[UserRecord, Mapping[str, Any]]],
    options: StaleReportOptions,
    now: Optional[datetime] = None,
    sku_lookup: Optional[SkuLookup] = None,
) -> StaleAccountReport:
    """Run the filter and bundle rows with columns, errors and warnings."""
    records = list(records)
    stale_filter = StaleAccountFilter(options, now=now, sku_lookup=sku_lookup)
    rows = stale_filter.apply(records)
    return StaleAccountReport(
        rows=rows,
        columns=stale_filter.columns,
        errors=stale_filter.errors,
        warnings=stale_filter.warnings,
        stale_cutoff=stale_filter.stale_cutoff,
        grace_cutoff=stale_filter.grace_cutoff,
        records_evaluated=len(records),
    )
