"""
SKU Collector
Reads subscribed SKUs so license ids can be shown by product name.
"""

from __future__ import annotations

from ..graph.client import GraphAPIError
from ..models import SkuLookup
from .base import BaseCollector, CollectorResult


class SkuCollector(BaseCollector):
    name = "skus"
    description = "Subscribed SKU id to part number lookup"

    async def collect(self, result: CollectorResult):
        try:
            skus = await self.graph.get_all_pages("subscribedSkus", skip_top=True)
            result.metadata["endpoints_queried"] += 1
        except GraphAPIError as e:
            # License names are cosmetic; the report falls back to raw ids
            if e.status_code == 403:
                result.metadata["permission_gaps"].append("subscribedSkus")
                reason = "permission denied, requires Organization.Read.All"
            else:
                reason = f"Graph error {e.status_code}"
            result.add_warning(f"SKU lookup unavailable: {e}")
            result.add_data("sku_lookup", SkuLookup.unavailable(reason))
            return

        result.add_data("sku_lookup", SkuLookup.from_subscribed_skus(skus))
