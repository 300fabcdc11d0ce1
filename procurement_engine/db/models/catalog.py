from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from procurement_engine.db.base import Base, UUIDPkMixin, TimestampMixin


class Item(UUIDPkMixin, TimestampMixin, Base):
    """Item/product master record with its current on-hand stock."""
    __tablename__ = "items"
    __table_args__ = (
        UniqueConstraint("sku", name="uq_items_sku"),
    )

    sku: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_family: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="pcs", server_default="pcs")
    # Mutated by goods receipt/issue outside this engine; only ever read here.
    on_hand_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    unit_price: Mapped[Optional[float]] = mapped_column(Numeric(18, 6), nullable=True)
    is_assembly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", server_default="active")


class BomLine(UUIDPkMixin, TimestampMixin, Base):
    """
    Directed BOM edge: quantity of a component needed per one parent unit.

    A parent lists each component once; version labels the revision of that line.
    """
    __tablename__ = "bom_lines"
    __table_args__ = (
        UniqueConstraint("parent_item_id", "component_item_id", name="uq_bom_lines_parent_component"),
        CheckConstraint("qty_per > 0", name="qty_per_positive"),
    )

    parent_item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    component_item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id", ondelete="RESTRICT"), nullable=False, index=True)
    qty_per: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[str] = mapped_column(Text, nullable=False, default="v1.0", server_default="v1.0")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
