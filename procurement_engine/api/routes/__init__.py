"""
API route modules for the procurement engine.

This package contains subrouters for:
- Catalog: assembly buildability, BOM explosion and BOM edits
- Stock requirements: per sales order recompute and requisition generation
- Requisitions: queries, lifecycle transitions and sweeps

Routers are included from procurement_engine.api.main (under the /api/v1 prefix).
"""

VIEW_ROLES = ("admin", "superadmin", "procurement:view", "procurement:approve", "procurement:manage")
MANAGE_ROLES = ("admin", "superadmin", "procurement:manage")
