"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for the catalog, sales demand,
stock requirements, requisitions and the audit trail. They flush but never
commit; the calling service owns the transaction.
"""
