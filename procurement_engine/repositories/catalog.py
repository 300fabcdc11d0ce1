from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Row, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.db.models.catalog import BomLine, Item
from .base import BaseRepository


class ItemRepository(BaseRepository):
    """Repository for Items (products) and their current stock."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_item(self, item_id: UUID) -> Optional[Item]:
        stmt = select(Item).where(Item.id == item_id).execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def list_active_assemblies(self) -> List[Item]:
        stmt = (
            select(Item)
            .where(Item.is_assembly.is_(True), Item.status == "active")
            .order_by(Item.product_family, Item.name)
            .execution_options(populate_existing=True)
        )
        res = await self.scalars(stmt)
        return list(res)

    async def list_low_stock_parts(self) -> List[Item]:
        """Active non-assembly items at or below a positive reorder level."""
        stmt = (
            select(Item)
            .where(
                Item.status == "active",
                Item.is_assembly.is_(False),
                Item.reorder_level > 0,
                Item.on_hand_quantity <= Item.reorder_level,
            )
            .order_by(Item.on_hand_quantity, Item.name)
            .execution_options(populate_existing=True)
        )
        res = await self.scalars(stmt)
        return list(res)

    async def get_skus(self, item_ids: Iterable[UUID]) -> Dict[UUID, str]:
        stmt = select(Item.id, Item.sku).where(Item.id.in_(list(item_ids)))
        res = await self.execute(stmt)
        return {item_id: sku for item_id, sku in res.all()}

    async def mark_assembly(self, item_id: UUID) -> None:
        await self.execute(update(Item).where(Item.id == item_id).values(is_assembly=True))


class BomRepository(BaseRepository):
    """Repository for BOM edges."""

    async def get_assembly_components(self, parent_item_id: UUID) -> List[Row]:
        """
        Return the direct active components of an assembly with their current stock.

        Each row exposes component_item_id, qty_per, name, sku, unit,
        on_hand_quantity, reorder_level and is_assembly.
        """
        stmt = (
            select(
                BomLine.component_item_id,
                BomLine.qty_per,
                Item.name,
                Item.sku,
                Item.unit,
                Item.on_hand_quantity,
                Item.reorder_level,
                Item.is_assembly,
            )
            .join(Item, BomLine.component_item_id == Item.id)
            .where(BomLine.parent_item_id == parent_item_id, Item.status == "active")
            .order_by(Item.name)
        )
        res = await self.execute(stmt)
        return list(res.all())

    async def list_edges(self) -> List[Tuple[UUID, UUID]]:
        stmt = select(BomLine.parent_item_id, BomLine.component_item_id)
        res = await self.execute(stmt)
        return [(parent, component) for parent, component in res.all()]

    async def get_bom_line(self, parent_item_id: UUID, component_item_id: UUID) -> Optional[BomLine]:
        stmt = select(BomLine).where(
            BomLine.parent_item_id == parent_item_id, BomLine.component_item_id == component_item_id
        )
        return await self.scalar_one_or_none(stmt)

    async def create_bom_line(
        self,
        *,
        parent_item_id: UUID,
        component_item_id: UUID,
        qty_per: int,
        version: str,
        notes: Optional[str],
    ) -> BomLine:
        row = BomLine(
            parent_item_id=parent_item_id,
            component_item_id=component_item_id,
            qty_per=qty_per,
            version=version,
            notes=notes,
        )
        await self.add(row)
        await self.flush()
        return row
