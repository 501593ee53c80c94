# tests/conftest.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime the way Graph does (UTC, trailing Z)."""
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_user(
    upn: Optional[str] = "user@contoso.com",
    created: Optional[datetime] = None,
    last_sign_in: Optional[datetime] = None,
    last_non_interactive: Optional[datetime] = None,
    user_type: str = "Member",
    enabled: bool = True,
    sku_ids: tuple = (),
    **extra: Any,
) -> Dict[str, Any]:
    """Build a Graph-shaped user object."""
    if created is None:
        created = NOW - timedelta(days=400)
    user: Dict[str, Any] = {
        "id": extra.pop("id", f"id-{upn}"),
        "displayName": extra.pop("displayName", (upn or "nobody").split("@")[0]),
        "userPrincipalName": upn,
        "mail": upn,
        "accountEnabled": enabled,
        "userType": user_type,
        "createdDateTime": iso(created),
        "signInActivity": {
            "lastSignInDateTime": iso(last_sign_in),
            "lastNonInteractiveSignInDateTime": iso(last_non_interactive),
        },
        "assignedLicenses": [{"skuId": s, "disabledPlans": []} for s in sku_ids],
    }
    user.update(extra)
    return user


@pytest.fixture
def now() -> datetime:
    return NOW
