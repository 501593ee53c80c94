"""
User Collector
Enumerates directory users with sign-in activity and, optionally, licenses.
"""

from __future__ import annotations

import logging

from ..config import CollectionConfig
from ..graph.client import GraphClient
from .base import BaseCollector, CollectorResult

logger = logging.getLogger("stale_account_report.collectors.users")

BASE_USER_FIELDS = [
    "id", "displayName", "userPrincipalName", "mail", "accountEnabled",
    "userType", "createdDateTime", "signInActivity",
]
LICENSE_USER_FIELDS = ["assignedLicenses", "officeLocation", "jobTitle"]


class UserCollector(BaseCollector):
    name = "users"
    description = "Directory users with signInActivity"

    def __init__(
        self,
        graph: GraphClient,
        config: CollectionConfig,
        members_only: bool = False,
        include_licenses: bool = False,
    ):
        super().__init__(graph, config)
        self.members_only = members_only
        self.include_licenses = include_licenses

    def build_params(self) -> dict[str, str]:
        """Query parameters for GET /users."""
        fields = list(BASE_USER_FIELDS)
        if self.include_licenses:
            fields.extend(LICENSE_USER_FIELDS)
        params = {
            "$select": ",".join(fields),
            "$top": str(self.config.page_size),
        }
        if self.members_only:
            params["$filter"] = "userType eq 'Member'"
        return params

    async def collect(self, result: CollectorResult):
        users = await self.safe_get_all("users", result, params=self.build_params())
        if "users" in result.metadata["permission_gaps"]:
            result.add_error(
                "Cannot read users — requires User.Read.All and AuditLog.Read.All"
            )
        result.add_data("users", users)
