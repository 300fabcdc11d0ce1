"""
ORM models for the catalog, sales demand, stock requirements, purchase
requisitions and the audit trail.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

# Re-export commonly used models for convenience and to ensure import side-effects
# register all mapped classes with SQLAlchemy metadata.

from .catalog import (  # noqa: F401
    Item,
    BomLine,
)
from .sales import (  # noqa: F401
    SalesOrder,
    SalesOrderLine,
)
from .procurement import (  # noqa: F401
    OPEN_STATUSES,
    PurchaseRequisition,
    RequisitionSequence,
    RequisitionStatus,
    ShortageTier,
    SourceType,
    StockRequirement,
    Urgency,
)
from .audit import (  # noqa: F401
    AuditEntry,
)
