from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from procurement_engine.db.base import Base, UUIDPkMixin, TimestampMixin


class SalesOrder(UUIDPkMixin, TimestampMixin, Base):
    """Sales order header. Owned by the order-management application; read-only here."""
    __tablename__ = "sales_orders"

    so_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    installation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class SalesOrderLine(UUIDPkMixin, TimestampMixin, Base):
    """Sales order line item."""
    __tablename__ = "sales_order_lines"

    sales_order_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
