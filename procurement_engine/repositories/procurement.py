from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, case, delete, exists, func, select
from sqlalchemy.exc import IntegrityError

from procurement_engine.db.models.catalog import Item
from procurement_engine.db.models.procurement import (
    OPEN_STATUSES,
    PurchaseRequisition,
    RequisitionSequence,
    SourceType,
    StockRequirement,
)
from .base import BaseRepository


_STATUS_ORDER = case(
    {"pending": 1, "approved": 2, "rejected": 3, "converted": 4},
    value=PurchaseRequisition.status,
    else_=5,
)
_URGENCY_ORDER = case(
    {"critical": 1, "high": 2, "medium": 3, "low": 4},
    value=PurchaseRequisition.urgency,
    else_=5,
)
_TIER_ORDER = case(
    {"critical": 1, "shortage": 2, "sufficient": 3},
    value=StockRequirement.status,
    else_=4,
)


class RequisitionRepository(BaseRepository):
    """Repository for purchase requisitions and their year-scoped numbering."""

    def _open_for(self, item_id: UUID, source_type: str, source_key: str):
        return and_(
            PurchaseRequisition.item_id == item_id,
            PurchaseRequisition.source_type == source_type,
            PurchaseRequisition.source_key == source_key,
            PurchaseRequisition.status.in_(OPEN_STATUSES),
        )

    async def find_open_requisition(
        self, item_id: UUID, source_type: str, source_key: str
    ) -> Optional[PurchaseRequisition]:
        stmt = (
            select(PurchaseRequisition)
            .where(self._open_for(item_id, source_type, source_key))
            .order_by(PurchaseRequisition.created_at.asc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def next_sequence_for_year(self, year: int) -> int:
        """
        Consume the next requisition sequence value for ``year``.

        The counter row stays locked until the caller's transaction ends, and a
        rollback returns the value.
        """
        stmt = (
            select(RequisitionSequence)
            .where(RequisitionSequence.year == year)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        counter = await self.scalar_one_or_none(stmt)
        if counter is None:
            try:
                async with self.session.begin_nested():
                    self.session.add(RequisitionSequence(year=year, last_value=1))
                return 1
            except IntegrityError:
                # Another transaction created this year's counter first.
                counter = await self.scalar_one(stmt)

        counter.last_value += 1
        await self.flush()
        return counter.last_value

    async def insert_requisition(self, row: PurchaseRequisition) -> PurchaseRequisition:
        await self.add(row)
        await self.flush()
        return row

    async def get_requisition(
        self, requisition_id: UUID, *, for_update: bool = False
    ) -> Optional[PurchaseRequisition]:
        stmt = select(PurchaseRequisition).where(PurchaseRequisition.id == requisition_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def update_requisition_status(
        self, requisition: PurchaseRequisition, new_status: str, **values
    ) -> PurchaseRequisition:
        requisition.status = new_status
        for key, value in values.items():
            setattr(requisition, key, value)
        await self.flush()
        return requisition

    async def list_requisitions(
        self,
        *,
        status: Optional[str],
        item_id: Optional[UUID],
        limit: int,
        offset: int,
    ) -> List[PurchaseRequisition]:
        stmt = select(PurchaseRequisition)
        if status:
            stmt = stmt.where(PurchaseRequisition.status == status)
        if item_id:
            stmt = stmt.where(PurchaseRequisition.item_id == item_id)
        stmt = stmt.order_by(_STATUS_ORDER, _URGENCY_ORDER, PurchaseRequisition.created_at.desc())
        stmt = stmt.offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(PurchaseRequisition.status, func.count(PurchaseRequisition.id)).group_by(
            PurchaseRequisition.status
        )
        res = await self.execute(stmt)
        return {status: int(count) for status, count in res.all()}


class StockRequirementRepository(BaseRepository):
    """Repository for derived per-order stock requirements."""

    @staticmethod
    def _has_open_requisition():
        return exists().where(
            PurchaseRequisition.item_id == StockRequirement.item_id,
            PurchaseRequisition.sales_order_id == StockRequirement.sales_order_id,
            PurchaseRequisition.source_type == SourceType.SALES_ORDER.value,
            PurchaseRequisition.status.in_(OPEN_STATUSES),
        )

    async def replace_for_order(
        self, sales_order_id: UUID, rows: Iterable[StockRequirement]
    ) -> List[StockRequirement]:
        await self.execute(delete(StockRequirement).where(StockRequirement.sales_order_id == sales_order_id))
        rows = list(rows)
        await self.add_all(rows)
        await self.flush()
        return rows

    async def get_requirement(self, requirement_id: UUID) -> Optional[StockRequirement]:
        stmt = (
            select(StockRequirement)
            .where(StockRequirement.id == requirement_id)
            .execution_options(populate_existing=True)
        )
        return await self.scalar_one_or_none(stmt)

    async def list_shortfall_requirement_ids(self, sales_order_id: UUID) -> List[Tuple[UUID, str]]:
        """(requirement id, item name) for every line of the order with a positive shortfall."""
        stmt = (
            select(StockRequirement.id, Item.name)
            .join(Item, StockRequirement.item_id == Item.id)
            .where(
                StockRequirement.sales_order_id == sales_order_id,
                StockRequirement.shortfall_quantity > 0,
            )
            .order_by(StockRequirement.created_at, Item.name)
        )
        res = await self.execute(stmt)
        return [(rid, name) for rid, name in res.all()]

    async def list_requirements(
        self, *, sales_order_id: Optional[UUID], limit: int, offset: int
    ) -> List[Tuple[StockRequirement, bool]]:
        stmt = select(StockRequirement, self._has_open_requisition().label("has_open_requisition"))
        if sales_order_id:
            stmt = stmt.where(StockRequirement.sales_order_id == sales_order_id)
        stmt = stmt.order_by(_TIER_ORDER, StockRequirement.created_at.desc()).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(row, bool(flag)) for row, flag in res.all()]

    async def has_open_requisition(self, requirement: StockRequirement) -> bool:
        stmt = select(
            exists().where(
                PurchaseRequisition.item_id == requirement.item_id,
                PurchaseRequisition.sales_order_id == requirement.sales_order_id,
                PurchaseRequisition.source_type == SourceType.SALES_ORDER.value,
                PurchaseRequisition.status.in_(OPEN_STATUSES),
            )
        )
        return bool(await self.scalar_one(stmt))

    async def summarize(self) -> Dict[str, int]:
        stmt = select(
            StockRequirement.status,
            func.count(StockRequirement.id),
            func.coalesce(func.sum(StockRequirement.shortfall_quantity), 0),
        ).group_by(StockRequirement.status)
        res = await self.execute(stmt)
        summary = {"total": 0, "sufficient": 0, "shortage": 0, "critical": 0, "total_shortfall_units": 0}
        for status, count, units in res.all():
            summary[status] = int(count)
            summary["total"] += int(count)
            summary["total_shortfall_units"] += int(units)
        return summary
