from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import Row, func, select

from procurement_engine.db.models.catalog import Item
from procurement_engine.db.models.sales import SalesOrder, SalesOrderLine
from .base import BaseRepository


class SalesOrderRepository(BaseRepository):
    """Read-only access to sales demand."""

    async def get_sales_order(self, sales_order_id: UUID) -> Optional[SalesOrder]:
        stmt = select(SalesOrder).where(SalesOrder.id == sales_order_id)
        return await self.scalar_one_or_none(stmt)

    async def list_demand_with_stock(self, sales_order_id: UUID) -> List[Row]:
        """
        Required quantity per item on the order, summed over its lines, next to
        the item's current on-hand quantity.

        Rows expose item_id, item_name, required and on_hand.
        """
        stmt = (
            select(
                SalesOrderLine.item_id,
                Item.name.label("item_name"),
                func.sum(SalesOrderLine.quantity).label("required"),
                Item.on_hand_quantity.label("on_hand"),
            )
            .join(Item, SalesOrderLine.item_id == Item.id)
            .where(SalesOrderLine.sales_order_id == sales_order_id)
            .group_by(SalesOrderLine.item_id, Item.name, Item.on_hand_quantity)
            .order_by(Item.name)
        )
        res = await self.execute(stmt)
        return list(res.all())
