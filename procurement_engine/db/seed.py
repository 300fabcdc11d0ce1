"""
Database seeding utilities for a small sample catalog.

Seeds:
- Parts and two assemblies (a solar kit and its mounting sub-assembly)
- BOM lines linking them
- One sales order with three lines

Usage:
  python -m procurement_engine.db.run_migrations upgrade head
  python -m procurement_engine.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Dict, List, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.logging import configure_logging
from procurement_engine.db.models.catalog import BomLine, Item
from procurement_engine.db.models.sales import SalesOrder, SalesOrderLine
from procurement_engine.db.session import get_session_maker

logger = logging.getLogger(__name__)

# sku, name, family, unit, on_hand, reorder_level, is_assembly
_ITEMS: List[Tuple[str, str, str, str, int, int, bool]] = [
    ("KIT-SOLAR-5KW", "Solar Kit 5kW", "Residential", "set", 0, 2, True),
    ("MNT-ROOF-SET", "Roof Mount Set", "Mounting", "set", 1, 4, True),
    ("PNL-400W", "Solar Panel 400W", "Panels", "pcs", 30, 24, False),
    ("INV-5KW", "Hybrid Inverter 5kW", "Inverters", "pcs", 1, 2, False),
    ("RAIL-2M", "Aluminium Rail 2m", "Mounting", "pcs", 10, 16, False),
    ("CLMP-MID", "Mid Clamp", "Mounting", "pcs", 0, 40, False),
    ("CBL-PV-4MM", "PV Cable 4mm (100m)", "Electrical", "roll", 3, 2, False),
]

# parent sku, component sku, qty per parent
_BOM: List[Tuple[str, str, int]] = [
    ("KIT-SOLAR-5KW", "PNL-400W", 12),
    ("KIT-SOLAR-5KW", "INV-5KW", 1),
    ("KIT-SOLAR-5KW", "MNT-ROOF-SET", 1),
    ("KIT-SOLAR-5KW", "CBL-PV-4MM", 1),
    ("MNT-ROOF-SET", "RAIL-2M", 4),
    ("MNT-ROOF-SET", "CLMP-MID", 8),
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with the sample catalog, BOM and sales order.

    Existing rows (matched by SKU or order number) are left untouched.
    """
    async with get_session_maker()() as session:
        async with session.begin():
            items = await _seed_items(session)
            await _seed_bom(session, items)
            await _seed_sales_order(session, items)


async def _seed_items(session: AsyncSession) -> Dict[str, UUID]:
    """
    Seed items and return a mapping SKU->id.
    """
    ids: Dict[str, UUID] = {}
    for sku, name, family, unit, on_hand, reorder, is_assembly in _ITEMS:
        res = await session.execute(select(Item.id).where(Item.sku == sku))
        existing = res.scalar_one_or_none()
        if existing:
            ids[sku] = existing
            continue
        item = Item(
            sku=sku,
            name=name,
            product_family=family,
            unit=unit,
            on_hand_quantity=on_hand,
            reorder_level=reorder,
            is_assembly=is_assembly,
        )
        session.add(item)
        await session.flush()
        ids[sku] = item.id
    return ids


async def _seed_bom(session: AsyncSession, items: Dict[str, UUID]) -> None:
    for parent, component, qty in _BOM:
        res = await session.execute(
            select(BomLine.id).where(
                BomLine.parent_item_id == items[parent],
                BomLine.component_item_id == items[component],
            )
        )
        if res.first():
            continue
        session.add(BomLine(parent_item_id=items[parent], component_item_id=items[component], qty_per=qty))
    await session.flush()


async def _seed_sales_order(session: AsyncSession, items: Dict[str, UUID]) -> None:
    res = await session.execute(select(SalesOrder.id).where(SalesOrder.so_number == "SO-0001"))
    if res.first():
        return
    today = date.today()
    order = SalesOrder(
        so_number="SO-0001",
        customer_name="Sample Customer",
        customer_reference="QUOTE-1001",
        order_date=today,
        installation_date=today + timedelta(days=21),
    )
    session.add(order)
    await session.flush()
    session.add_all(
        [
            SalesOrderLine(sales_order_id=order.id, line_no=1, item_id=items["KIT-SOLAR-5KW"], quantity=2),
            SalesOrderLine(sales_order_id=order.id, line_no=2, item_id=items["PNL-400W"], quantity=36),
            SalesOrderLine(sales_order_id=order.id, line_no=3, item_id=items["CLMP-MID"], quantity=16),
        ]
    )
    await session.flush()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_all())
    logger.info("Seed complete")
