"""
Stale Account Report
====================
Read-only Microsoft Entra ID reports: stale (dormant) user accounts and
manager relationships, fetched through Microsoft Graph.

This tool never modifies the tenant.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
