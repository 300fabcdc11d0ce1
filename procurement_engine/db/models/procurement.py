from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from procurement_engine.db.base import Base, UUIDPkMixin, TimestampMixin


class RequisitionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


OPEN_STATUSES = (RequisitionStatus.PENDING.value, RequisitionStatus.APPROVED.value)


class Urgency(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ShortageTier(str, Enum):
    CRITICAL = "critical"
    SHORTAGE = "shortage"
    SUFFICIENT = "sufficient"


class SourceType(str, Enum):
    """What raised the requisition; paired with a source key it forms the dedup context."""
    SALES_ORDER = "sales_order"
    BOM_ASSEMBLY = "bom_assembly"
    LOW_STOCK = "low_stock"


class StockRequirement(UUIDPkMixin, TimestampMixin, Base):
    """Required vs available stock for one (sales order, item) pair; replaced on recompute."""
    __tablename__ = "stock_requirements"
    __table_args__ = (
        UniqueConstraint("sales_order_id", "item_id", name="uq_stock_requirements_order_item"),
    )

    sales_order_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    required_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    shortfall_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)


class PurchaseRequisition(UUIDPkMixin, TimestampMixin, Base):
    """Internal request to procure a shortfall, pending approval."""
    __tablename__ = "purchase_requisitions"
    __table_args__ = (
        UniqueConstraint("number", name="uq_purchase_requisitions_number"),
        # At most one open requisition per item and context.
        Index(
            "uq_purchase_requisitions_open_context",
            "item_id",
            "source_type",
            "source_key",
            unique=True,
            postgresql_where=text("status IN ('pending', 'approved')"),
            sqlite_where=text("status IN ('pending', 'approved')"),
        ),
    )

    number: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    sales_order_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("sales_orders.id", ondelete="SET NULL"), nullable=True)
    source_type: Mapped[str] = mapped_column(Text, nullable=False)
    source_key: Mapped[str] = mapped_column(Text, nullable=False)
    required_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_by: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=RequisitionStatus.PENDING.value)
    urgency: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    converted_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    purchase_order_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class RequisitionSequence(Base):
    """Per-year requisition counter; the row is locked while a number is consumed."""
    __tablename__ = "requisition_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
