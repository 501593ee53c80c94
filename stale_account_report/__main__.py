"""
Stale Account Report — Command-line entry point

Usage:
    python -m stale_account_report stale --tenant-id ... --client-id ... --cert-path ./base64.txt
    python -m stale_account_report stale --stale-days 120 --exclude-guests --include-licenses
    python -m stale_account_report stale --domain contoso.com --exclude-upn breakglass@contoso.com
    python -m stale_account_report managers --only-missing-manager --formats table csv
    python -m stale_account_report permissions --include-licenses
    python -m stale_account_report stale --config config.json --delegated

This tool is STRICTLY READ-ONLY. It will NEVER modify the tenant.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

import httpx

from . import __version__
from .config import (
    CertificateAuth,
    DelegatedAuth,
    LICENSE_PERMISSIONS,
    REQUIRED_PERMISSIONS,
    ReportConfig,
    StaleReportOptions,
    ManagerReportOptions,
    required_scopes,
)
from .auth.authenticator import Authenticator, AuthenticationError
from .safety.guardian import SafetyGuardian
from .graph.client import GraphClient
from .collectors import UserCollector, SkuCollector, ManagerCollector, CollectorResult
from .analyzers import MANAGER_COLUMNS, build_manager_report, build_stale_report
from .reporting import export_csv, export_json, print_table

FORMATS = ["table", "csv", "json"]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _connection_parser() -> argparse.ArgumentParser:
    """Options shared by every report command."""
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to JSON configuration file",
    )
    parent.add_argument(
        "--delegated",
        action="store_true",
        help="Use delegated (device-code) authentication instead of certificate",
    )
    parent.add_argument("--tenant-id", type=str, default=None, help="Tenant ID (GUID)")
    parent.add_argument("--client-id", type=str, default=None, help="App registration client ID (GUID)")
    parent.add_argument(
        "--cert-path",
        type=Path,
        help="Path to base64-encoded PFX certificate (default: ./base64.txt)",
    )
    parent.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help="Output directory for CSV/JSON files (default: ./stale_account_reports)",
    )
    parent.add_argument(
        "--formats",
        nargs="+",
        choices=FORMATS,
        default=None,
        help="Output formats to generate (default: table)",
    )
    parent.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parent


def _add_stale_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stale-days", type=int, default=None,
        help="Days without interactive sign-in before an account is stale (default: 90)",
    )
    parser.add_argument(
        "--grace-days", type=int, default=None,
        help="Accounts created within this many days are never reported (default: 30)",
    )
    parser.add_argument("--exclude-guests", action="store_true", default=None, help="Skip Guest accounts")
    parser.add_argument("--exclude-disabled", action="store_true", default=None, help="Skip disabled accounts")
    parser.add_argument(
        "--include-non-interactive", action="store_true", default=None,
        help="Add the last non-interactive sign-in column",
    )
    parser.add_argument(
        "--exclude-upn", action="append", default=None, metavar="UPN",
        help="UPN to leave out of the report (repeatable, case-insensitive)",
    )
    parser.add_argument(
        "--exclude-ext-upns", action="store_true", default=None,
        help="Skip UPNs containing #EXT# (external identities)",
    )
    parser.add_argument(
        "--domain", action="append", default=None, metavar="DOMAIN",
        help="Only report UPNs in this domain (repeatable, exact match)",
    )
    parser.add_argument(
        "--include-licenses", action="store_true", default=None,
        help="Add office, job title and license name columns (needs Organization.Read.All)",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stale_account_report",
        description="Read-only Entra ID account reports",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Report to run")
    common = _connection_parser()

    stale_p = subparsers.add_parser(
        "stale", parents=[common], help="List accounts with no recent interactive sign-in"
    )
    _add_stale_filters(stale_p)

    mgr_p = subparsers.add_parser(
        "managers", parents=[common], help="List users and their managers"
    )
    mgr_p.add_argument("--exclude-guests", action="store_true", default=None, help="Skip Guest accounts")
    mgr_p.add_argument("--exclude-disabled", action="store_true", default=None, help="Skip disabled accounts")
    mgr_p.add_argument(
        "--only-missing-manager", action="store_true", default=None,
        help="Only list users without a manager",
    )

    perm_p = subparsers.add_parser("permissions", help="Show the Graph permissions a report needs")
    perm_p.add_argument("--include-licenses", action="store_true", help="Include license resolution")

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def _pick(cli_value, config_value):
    return config_value if cli_value is None else cli_value


def stale_options_from_args(args: argparse.Namespace, base: StaleReportOptions) -> StaleReportOptions:
    """Merge CLI flags over options loaded from the config file."""
    return StaleReportOptions(
        stale_days=_pick(args.stale_days, base.stale_days),
        grace_days=_pick(args.grace_days, base.grace_days),
        exclude_guests=_pick(args.exclude_guests, base.exclude_guests),
        exclude_disabled=_pick(args.exclude_disabled, base.exclude_disabled),
        include_non_interactive=_pick(args.include_non_interactive, base.include_non_interactive),
        exclude_upns=_pick(args.exclude_upn, base.exclude_upns),
        exclude_ext_upns=_pick(args.exclude_ext_upns, base.exclude_ext_upns),
        domains=_pick(args.domain, base.domains),
        include_licenses=_pick(args.include_licenses, base.include_licenses),
    )


def manager_options_from_args(args: argparse.Namespace, base: ManagerReportOptions) -> ManagerReportOptions:
    return ManagerReportOptions(
        exclude_guests=_pick(args.exclude_guests, base.exclude_guests),
        exclude_disabled=_pick(args.exclude_disabled, base.exclude_disabled),
        only_missing_manager=_pick(args.only_missing_manager, base.only_missing_manager),
    )


def build_config(args: argparse.Namespace) -> ReportConfig:
    """Build report configuration from a config file and CLI overrides."""
    if args.config:
        if not args.config.exists():
            raise SystemExit(f"❌ Config file not found: {args.config}")
        config = ReportConfig.from_file(args.config)
    else:
        config = ReportConfig()

    if args.delegated:
        config.auth.mode = "delegated"
    if args.verbose:
        config.verbose = True

    if config.auth.mode == "delegated":
        existing = config.auth.delegated
        tenant_id = args.tenant_id or (existing.tenant_id if existing else None)
        client_id = args.client_id or (existing.client_id if existing else None)
        if tenant_id and client_id:
            config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)
    else:
        existing_cert = config.auth.certificate
        tenant_id = args.tenant_id or (existing_cert.tenant_id if existing_cert else None)
        client_id = args.client_id or (existing_cert.client_id if existing_cert else None)
        if args.cert_path:
            cert_path = str(args.cert_path)
        elif existing_cert:
            cert_path = existing_cert.certificate_path
        else:
            cert_path = "./base64.txt"
        if tenant_id and client_id:
            config.auth.certificate = CertificateAuth(
                tenant_id=tenant_id,
                client_id=client_id,
                certificate_path=cert_path,
                certificate_password=existing_cert.certificate_password if existing_cert else "",
            )

    if config.auth.mode == "delegated" and not config.auth.delegated:
        raise SystemExit("❌ Delegated auth needs --tenant-id and --client-id (or a config file).")
    if config.auth.mode != "delegated" and not config.auth.certificate:
        raise SystemExit(
            "❌ No tenant credentials found. Use --tenant-id X --client-id Y "
            "[--cert-path FILE] or --config config.json."
        )

    if args.output_dir:
        config.output.base_dir = str(args.output_dir)
    if args.formats:
        config.output.formats = list(args.formats)

    if args.command == "stale":
        config.stale = stale_options_from_args(args, config.stale)
    elif args.command == "managers":
        config.managers = manager_options_from_args(args, config.managers)
    return config


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Report execution
# ---------------------------------------------------------------------------

def _print_collector_status(result: CollectorResult) -> None:
    status = "✅" if result.ok else "❌"
    print(f"  {status} {result.collector_name}: {result.metadata['items_collected']} items "
          f"({result.metadata['duration_seconds']}s)")
    for w in result.metadata["warnings"]:
        print(f"      ⚠  {w}")
    for e in result.metadata["errors"]:
        print(f"      ❌ {e}")


def emit_report(rows: list, columns: list, config: ReportConfig, report_name: str,
                run_id: str, summary: dict) -> list[Path]:
    """Render rows in every requested format; return created files."""
    created = []
    formats = config.output.formats
    if "table" in formats:
        print()
        print_table(rows, columns)
        print()
    if "csv" in formats:
        path = export_csv(rows, columns, config.output.report_dir, report_name, run_id)
        created.append(path)
        print(f"  📊 CSV:   {path}")
    if "json" in formats:
        path = export_json(rows, columns, config.output.report_dir, report_name, run_id, summary)
        created.append(path)
        print(f"  📄 JSON:  {path}")
    return created


async def run_stale_report(
    config: ReportConfig,
    client: GraphClient,
    run_id: str,
    now: Optional[datetime] = None,
) -> int:
    options = config.stale
    print(f"\n  Stale threshold: {options.stale_days} days, grace period: {options.grace_days} days")

    collectors = [
        UserCollector(
            client, config.collection,
            members_only=options.exclude_guests,
            include_licenses=options.include_licenses,
        )
    ]
    if options.include_licenses:
        collectors.append(SkuCollector(client, config.collection))

    results = await asyncio.gather(*(c.execute() for c in collectors))
    for r in results:
        _print_collector_status(r)

    user_result = results[0]
    if not user_result.ok:
        print("\n❌ User collection failed. Cannot build the report.")
        return 1
    sku_lookup = results[1].data.get("sku_lookup") if len(results) > 1 else None

    report = build_stale_report(
        user_result.data.get("users", []),
        options,
        now=now or datetime.now(timezone.utc),
        sku_lookup=sku_lookup,
    )

    summary = {
        "records_evaluated": report.records_evaluated,
        "stale_accounts": len(report.rows),
        "stale_cutoff": report.stale_cutoff.isoformat() if report.stale_cutoff else None,
        "grace_cutoff": report.grace_cutoff.isoformat() if report.grace_cutoff else None,
        "record_errors": [e.to_dict() for e in report.errors],
        "warnings": report.warnings,
        "safety": client.guardian.get_audit_record(),
    }
    emit_report(report.rows, report.columns, config, "stale_accounts", run_id, summary)

    print(f"  Evaluated {report.records_evaluated} accounts — {len(report.rows)} stale.")
    for w in report.warnings:
        print(f"  ⚠  {w}")
    if report.errors:
        print(f"  ⚠  {len(report.errors)} record(s) skipped due to data errors:")
        for e in report.errors:
            print(f"      • {e}")
    return 0


async def run_manager_report(config: ReportConfig, client: GraphClient, run_id: str) -> int:
    options = config.managers
    result = await ManagerCollector(
        client, config.collection, members_only=options.exclude_guests
    ).execute()
    _print_collector_status(result)
    if not result.ok:
        print("\n❌ User collection failed. Cannot build the report.")
        return 1

    rows = build_manager_report(result.data.get("users", []), options)
    summary = {
        "users_reported": len(rows),
        "users_without_manager": sum(1 for r in rows if r.managerUserPrincipalName is None),
        "safety": client.guardian.get_audit_record(),
    }
    emit_report(rows, MANAGER_COLUMNS, config, "manager_relationships", run_id, summary)
    print(f"  {summary['users_reported']} users — {summary['users_without_manager']} without a manager.")
    return 0


async def run_report(
    args: argparse.Namespace,
    config: ReportConfig,
    token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Run the selected report against Graph with an acquired token."""
    run_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]
    guardian = SafetyGuardian()

    async with GraphClient(
        access_token=token,
        guardian=guardian,
        transport=transport,
        max_pages=config.collection.max_pages,
    ) as client:
        if args.command == "managers":
            code = await run_manager_report(config, client, run_id)
        else:
            code = await run_stale_report(config, client, run_id)
        stats = client.get_stats()

    logging.getLogger("stale_account_report").debug(
        f"Graph requests: {stats['total_requests']}, throttled: {stats['throttle_events']}, "
        f"safety checks: {guardian.checks_performed}"
    )
    return code


def print_permissions(include_licenses: bool) -> int:
    catalog = {**REQUIRED_PERMISSIONS, **LICENSE_PERMISSIONS}
    print("\n  Required Microsoft Graph permissions:\n")
    for scope in required_scopes(include_licenses):
        print(f"  {scope:<24s} {catalog[scope]}")
    print()
    return 0


async def main_async(argv: Optional[Sequence[str]] = None) -> int:
    """Async entry point."""
    args = parse_args(argv)

    if args.command == "permissions":
        return print_permissions(args.include_licenses)

    config = build_config(args)
    configure_logging(config.verbose)

    print("=" * 70)
    print(f" Stale Account Report v{__version__} — READ-ONLY")
    print("=" * 70)

    include_licenses = args.command == "stale" and config.stale.include_licenses
    print("\n🔐 Authenticating...")
    try:
        token = Authenticator(config.auth, include_licenses=include_licenses).acquire_token()
    except AuthenticationError as e:
        print(f"❌ {e}")
        return 1
    print("✅ Authentication successful.")

    return await run_report(args, config, token)


def main():
    """Synchronous entry point for `python -m stale_account_report`."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
