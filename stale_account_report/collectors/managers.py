"""
Manager Collector
Enumerates users with their manager expanded.
"""

from __future__ import annotations

from ..config import CollectionConfig
from ..graph.client import GraphClient
from .base import BaseCollector, CollectorResult

USER_FIELDS = (
    "id,displayName,userPrincipalName,accountEnabled,userType,jobTitle,department"
)
MANAGER_EXPAND = "manager($select=id,displayName,userPrincipalName)"


class ManagerCollector(BaseCollector):
    name = "managers"
    description = "Users with expanded manager relationship"

    def __init__(self, graph: GraphClient, config: CollectionConfig, members_only: bool = False):
        super().__init__(graph, config)
        self.members_only = members_only

    def build_params(self) -> dict[str, str]:
        params = {
            "$select": USER_FIELDS,
            "$expand": MANAGER_EXPAND,
            "$top": str(self.config.page_size),
        }
        if self.members_only:
            params["$filter"] = "userType eq 'Member'"
        return params

    async def collect(self, result: CollectorResult):
        users = await self.safe_get_all("users", result, params=self.build_params())
        if "users" in result.metadata["permission_gaps"]:
            result.add_error("Cannot read users — requires User.Read.All")
        result.add_data("users", users)
