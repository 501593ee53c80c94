"""
Configuration module for the Stale Account Report tool.
Defines report options, API endpoints, and operational settings.
"""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional
from datetime import datetime, timezone


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty


@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str


@dataclass
class AuthConfig:
    """Authentication configuration — supports both modes."""
    mode: str = "certificate"  # "certificate" or "delegated"
    certificate: Optional[CertificateAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"

# Rate limiting / throttling
MAX_CONCURRENT_REQUESTS = 4       # Parallel requests to Graph
MAX_RETRIES = 5                   # Retry count for throttled requests
INITIAL_BACKOFF_SECONDS = 2.0     # First retry delay
MAX_BACKOFF_SECONDS = 120.0       # Cap on exponential backoff
BACKOFF_MULTIPLIER = 2.0          # Exponential factor

# Pagination
DEFAULT_PAGE_SIZE = 999           # Maximum items per page ($top)
MAX_PAGES_PER_ENDPOINT = 10000    # Safety cap on pagination loops


# ─── Collection Settings ────────────────────────────────────────────────────

@dataclass
class CollectionConfig:
    """Controls for data collection behavior."""
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = MAX_PAGES_PER_ENDPOINT


# ─── Report Options ─────────────────────────────────────────────────────────

def _normalize_set(values: Optional[Iterable[str]]) -> frozenset[str]:
    """Lower-case and de-duplicate a collection of names; None means empty."""
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass
class StaleReportOptions:
    """Options for the stale account report."""
    stale_days: int = 90                  # No interactive sign-in for N days = stale
    grace_days: int = 30                  # Accounts younger than N days are never stale
    exclude_guests: bool = False
    exclude_disabled: bool = False
    include_non_interactive: bool = False
    exclude_upns: frozenset[str] = field(default_factory=frozenset)
    exclude_ext_upns: bool = False
    domains: frozenset[str] = field(default_factory=frozenset)
    include_licenses: bool = False

    def __post_init__(self):
        self.stale_days = abs(int(self.stale_days))
        self.grace_days = abs(int(self.grace_days))
        self.exclude_upns = _normalize_set(self.exclude_upns)
        self.domains = _normalize_set(self.domains)


@dataclass
class ManagerReportOptions:
    """Options for the manager relationship report."""
    exclude_guests: bool = False
    exclude_disabled: bool = False
    only_missing_manager: bool = False


# ─── Output Configuration ───────────────────────────────────────────────────

@dataclass
class OutputConfig:
    """Output directory and format settings."""
    base_dir: str = ""
    timestamp: str = ""
    formats: list[str] = field(default_factory=lambda: ["table"])

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        if not self.base_dir:
            self.base_dir = os.path.join(os.getcwd(), "stale_account_reports")

    @property
    def report_dir(self) -> Path:
        return Path(self.base_dir)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class ReportConfig:
    """Top-level configuration for a report run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    stale: StaleReportOptions = field(default_factory=StaleReportOptions)
    managers: ManagerReportOptions = field(default_factory=ManagerReportOptions)
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "ReportConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
        if "collection" in data:
            for k, v in data["collection"].items():
                if hasattr(config.collection, k):
                    setattr(config.collection, k, v)
        if "output" in data:
            for k, v in data["output"].items():
                if hasattr(config.output, k):
                    setattr(config.output, k, v)
        if "stale_report" in data:
            known = StaleReportOptions.__dataclass_fields__
            config.stale = StaleReportOptions(
                **{k: v for k, v in data["stale_report"].items() if k in known}
            )
        if "manager_report" in data:
            known = ManagerReportOptions.__dataclass_fields__
            config.managers = ManagerReportOptions(
                **{k: v for k, v in data["manager_report"].items() if k in known}
            )
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions (Least Privilege, Read-Only) ─────────

REQUIRED_PERMISSIONS = {
    "User.Read.All": "Read user profiles, account state and manager links",
    "AuditLog.Read.All": "Read signInActivity on user objects",
}

LICENSE_PERMISSIONS = {
    "Organization.Read.All": "Resolve subscribed SKU ids to product names",
}


def required_scopes(include_licenses: bool = False) -> list[str]:
    """Return the permission names a report run needs."""
    scopes = list(REQUIRED_PERMISSIONS)
    if include_licenses:
        scopes.extend(LICENSE_PERMISSIONS)
    return scopes
