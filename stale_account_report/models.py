"""
Data models for directory records, SKU lookups, and report rows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

# fromisoformat on 3.10 only accepts 3 or 6 fractional digits; Graph emits up to 7
_FRACTION = re.compile(r"\.(\d+)")


class RecordError(ValueError):
    """Raised when a directory record cannot be used for reporting."""

    def __init__(self, record_id: Optional[str], upn: Optional[str], message: str):
        self.record_id = record_id
        self.upn = upn
        self.message = message
        label = upn or record_id or "<unknown>"
        super().__init__(f"Record {label}: {message}")

    def to_dict(self) -> dict:
        return {"id": self.record_id, "userPrincipalName": self.upn, "error": self.message}


def parse_graph_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a Graph timestamp into an aware UTC datetime.
    Returns None for empty values; raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class UserRecord:
    """A directory user as needed by the reports."""
    id: str
    created: datetime
    display_name: str = ""
    upn: Optional[str] = None
    mail: str = ""
    account_enabled: bool = True
    user_type: str = "Member"
    last_interactive_sign_in: Optional[datetime] = None
    last_non_interactive_sign_in: Optional[datetime] = None
    assigned_sku_ids: tuple[str, ...] = ()
    office_location: Optional[str] = None
    job_title: Optional[str] = None

    @classmethod
    def from_graph(cls, user: Mapping[str, Any]) -> "UserRecord":
        """Build a record from a Graph `user` object."""
        user_id = user.get("id")
        upn = user.get("userPrincipalName") or None

        try:
            created = parse_graph_datetime(user.get("createdDateTime"))
        except (ValueError, TypeError) as e:
            raise RecordError(user_id, upn, f"malformed createdDateTime: {e}")
        if created is None:
            raise RecordError(user_id, upn, "missing createdDateTime")

        sign_in = user.get("signInActivity") or {}
        if not isinstance(sign_in, Mapping):
            raise RecordError(user_id, upn, f"malformed signInActivity: {sign_in!r}")
        try:
            last_interactive = parse_graph_datetime(sign_in.get("lastSignInDateTime"))
            last_non_interactive = parse_graph_datetime(
                sign_in.get("lastNonInteractiveSignInDateTime")
            )
        except (ValueError, TypeError) as e:
            raise RecordError(user_id, upn, f"malformed signInActivity: {e}")

        licenses = user.get("assignedLicenses") or []
        if not isinstance(licenses, list) or not all(isinstance(lic, Mapping) for lic in licenses):
            raise RecordError(user_id, upn, f"malformed assignedLicenses: {licenses!r}")

        return cls(
            id=user_id or "",
            created=created,
            display_name=user.get("displayName") or "",
            upn=upn,
            mail=user.get("mail") or "",
            account_enabled=bool(user.get("accountEnabled")),
            user_type=user.get("userType") or "Member",
            last_interactive_sign_in=last_interactive,
            last_non_interactive_sign_in=last_non_interactive,
            assigned_sku_ids=tuple(str(lic["skuId"]) for lic in licenses if lic.get("skuId")),
            office_location=user.get("officeLocation"),
            job_title=user.get("jobTitle"),
        )

    @property
    def is_member(self) -> bool:
        return self.user_type.lower() == "member"

    @property
    def upn_domain(self) -> Optional[str]:
        """Domain part after the final '@', or None if there is none."""
        if not self.upn or "@" not in self.upn:
            return None
        return self.upn.rsplit("@", 1)[1]


class SkuLookup:
    """
    Case-insensitive skuId -> skuPartNumber mapping.
    An unavailable lookup resolves nothing; callers fall back to raw ids.
    """

    def __init__(self, names: Optional[Mapping[str, str]] = None, reason: str = ""):
        self._names = {k.lower(): v for k, v in (names or {}).items() if k}
        self.available = names is not None
        self.reason = reason

    @classmethod
    def from_subscribed_skus(cls, skus: Iterable[Mapping[str, Any]]) -> "SkuLookup":
        return cls({
            s["skuId"]: s.get("skuPartNumber") or s["skuId"]
            for s in skus
            if s.get("skuId")
        })

    @classmethod
    def unavailable(cls, reason: str = "") -> "SkuLookup":
        return cls(None, reason=reason)

    def get(self, sku_id: str) -> Optional[str]:
        return self._names.get(sku_id.lower())

    def resolve(self, sku_id: str) -> str:
        return self.get(sku_id) or sku_id

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, sku_id: object) -> bool:
        return isinstance(sku_id, str) and sku_id.lower() in self._names


@dataclass(frozen=True)
class Column:
    """One output column: row attribute name plus display header."""
    key: str
    header: str


@dataclass(frozen=True)
class ReportRow:
    """A single row of the stale account report."""
    displayName: str
    userPrincipalName: Optional[str]
    createdDateTime: datetime
    lastInteractiveSignIn: Optional[datetime]
    accountEnabled: bool
    userType: str
    officeLocation: Optional[str] = None
    jobTitle: Optional[str] = None
    lastNonInteractiveSignIn: Optional[datetime] = None
    assignedLicenseNames: Optional[str] = None
    user_id: str = field(default="", compare=False)

    def project(self, columns: Iterable[Column]) -> dict[str, Any]:
        """Return the row as an ordered dict limited to the given columns."""
        return {c.key: getattr(self, c.key) for c in columns}


@dataclass(frozen=True)
class ManagerRow:
    """A single row of the manager relationship report."""
    displayName: str
    userPrincipalName: Optional[str]
    jobTitle: Optional[str] = None
    department: Optional[str] = None
    managerDisplayName: Optional[str] = None
    managerUserPrincipalName: Optional[str] = None

    def project(self, columns: Iterable[Column]) -> dict[str, Any]:
        return {c.key: getattr(self, c.key) for c in columns}
