from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    PersistenceFailure,
    ProcurementError,
)
from procurement_engine.core.security import Actor
from procurement_engine.db.models.procurement import StockRequirement
from procurement_engine.repositories.audit import AuditRepository
from procurement_engine.repositories.catalog import ItemRepository
from procurement_engine.repositories.procurement import StockRequirementRepository
from procurement_engine.repositories.sales import SalesOrderRepository
from procurement_engine.services.base import BaseService
from procurement_engine.services.requisitions import RequisitionContext, RequisitionGenerator
from procurement_engine.services.shortage import classify_shortage, demand_urgency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequirementOutcome:
    """Result of generating a requisition for one stock requirement."""

    requirement_id: UUID
    item_name: str
    created: bool
    no_shortfall: bool = False
    requisition_id: Optional[UUID] = None
    number: Optional[str] = None
    status: Optional[str] = None
    urgency: Optional[str] = None
    quantity: Optional[int] = None


@dataclass(frozen=True)
class BatchFailure:
    requirement_id: UUID
    item_name: str
    code: str
    message: str


@dataclass
class BatchResult:
    """Per-line partition of a batch: created, nothing to do, failed."""

    sales_order_id: UUID
    success: List[RequirementOutcome] = field(default_factory=list)
    skipped: List[RequirementOutcome] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)


@dataclass(frozen=True)
class RecalculationResult:
    sales_order_id: UUID
    requirements: Tuple[StockRequirement, ...]

    @property
    def shortage_count(self) -> int:
        return sum(1 for r in self.requirements if r.shortfall_quantity > 0)


class StockRequirementService(BaseService):
    """
    Sales-order driven path: recompute requirements, then raise requisitions
    for one line or for every shortfall line of an order.
    """

    def __init__(
        self,
        session: AsyncSession,
        generator: Optional[RequisitionGenerator] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(session)
        self.generator = generator or RequisitionGenerator(session)
        self.today = today
        self.requirements = StockRequirementRepository(session)
        self.orders = SalesOrderRepository(session)
        self.items = ItemRepository(session)
        self.audit = AuditRepository(session)

    # PUBLIC_INTERFACE
    async def recalculate_stock_requirement(self, sales_order_id: UUID, actor: Actor) -> RecalculationResult:
        """
        Replace the order's stock requirement rows with required vs current stock per item.

        Quantities of lines for the same item are summed.

        Raises:
            NotFoundError: unknown sales order, or an order without lines
        """
        async with self.unit_of_work():
            order = await self.orders.get_sales_order(sales_order_id)
            if order is None:
                raise NotFoundError("SalesOrder", sales_order_id)
            demand = await self.orders.list_demand_with_stock(sales_order_id)
            if not demand:
                raise NotFoundError("SalesOrderLines", sales_order_id)

            rows = []
            for line in demand:
                assessment = classify_shortage(int(line.required), int(line.on_hand))
                rows.append(
                    StockRequirement(
                        sales_order_id=sales_order_id,
                        item_id=line.item_id,
                        required_quantity=assessment.required,
                        available_quantity=assessment.available,
                        shortfall_quantity=assessment.shortfall,
                        status=assessment.tier.value,
                    )
                )
            rows = await self.requirements.replace_for_order(sales_order_id, rows)
            result = RecalculationResult(sales_order_id=sales_order_id, requirements=tuple(rows))
            await self.audit.append(
                actor_id=actor.id,
                description=(
                    f"Recalculated stock requirements for {order.so_number}: "
                    f"{len(rows)} items, {result.shortage_count} short"
                ),
                module="stock_requirements",
                action_type="recalculate",
            )
        logger.info("Stock requirements for %s: %d items, %d short", order.so_number, len(rows), result.shortage_count)
        return result

    # PUBLIC_INTERFACE
    async def generate_requisition(
        self, requirement_id: UUID, actor: Actor, *, fail_if_open: bool = False
    ) -> RequirementOutcome:
        """
        Raise a requisition for one requirement's shortfall against current stock.

        The requirement row is refreshed from current stock first; when the
        shortfall is gone the outcome has no_shortfall=True and nothing is created.
        An already open requisition is a no-op outcome (created=False), or
        AlreadyExistsError when ``fail_if_open`` is set.
        """
        async with self.unit_of_work():
            requirement = await self.requirements.get_requirement(requirement_id)
            if requirement is None:
                raise NotFoundError("StockRequirement", requirement_id)
            item = await self.items.get_item(requirement.item_id)
            if item is None:
                raise NotFoundError("Item", requirement.item_id)
            order = await self.orders.get_sales_order(requirement.sales_order_id)
            if order is None:
                raise NotFoundError("SalesOrder", requirement.sales_order_id)

            assessment = classify_shortage(requirement.required_quantity, item.on_hand_quantity)
            requirement.available_quantity = assessment.available
            requirement.shortfall_quantity = assessment.shortfall
            requirement.status = assessment.tier.value
            await self.requirements.flush()

            if not assessment.has_shortfall:
                return RequirementOutcome(
                    requirement_id=requirement_id, item_name=item.name, created=False, no_shortfall=True
                )

            outcome = await self.generator.generate(
                item_id=item.id,
                quantity=assessment.shortfall,
                context=RequisitionContext.for_sales_order(order.id),
                urgency=demand_urgency(assessment.tier, order.installation_date, self.today()),
                reason=(
                    f"Stock shortage for SO {order.so_number}: {item.name} - "
                    f"Customer: {order.customer_name} (Shortage: {assessment.shortfall} units)"
                ),
                actor=actor,
            )
        if fail_if_open and not outcome.created:
            raise AlreadyExistsError(outcome.number, outcome.status)
        return RequirementOutcome(
            requirement_id=requirement_id,
            item_name=item.name,
            created=outcome.created,
            requisition_id=outcome.requisition_id,
            number=outcome.number,
            status=outcome.status,
            urgency=outcome.urgency,
            quantity=outcome.quantity,
        )

    # PUBLIC_INTERFACE
    async def batch_generate_requisitions(self, sales_order_id: UUID, actor: Actor) -> BatchResult:
        """
        Raise requisitions for every shortfall line of a sales order.

        Each line commits on its own. A failing line is recorded and the batch
        continues; only an unavailable store aborts the batch.
        """
        async with self.unit_of_work():
            order = await self.orders.get_sales_order(sales_order_id)
            if order is None:
                raise NotFoundError("SalesOrder", sales_order_id)
            lines = await self.requirements.list_shortfall_requirement_ids(sales_order_id)
            so_number = order.so_number

        result = BatchResult(sales_order_id=sales_order_id)
        for requirement_id, item_name in lines:
            try:
                outcome = await self.generate_requisition(requirement_id, actor)
            except PersistenceFailure as exc:
                if exc.unavailable:
                    raise
                self._record_failure(result, requirement_id, item_name, exc)
                continue
            except ProcurementError as exc:
                self._record_failure(result, requirement_id, item_name, exc)
                continue
            if outcome.created:
                result.success.append(outcome)
            else:
                result.skipped.append(outcome)

        logger.info(
            "Batch for %s: %d created, %d skipped, %d failed",
            so_number,
            len(result.success),
            len(result.skipped),
            len(result.failed),
        )
        return result

    @staticmethod
    def _record_failure(result: BatchResult, requirement_id: UUID, item_name: str, exc: ProcurementError) -> None:
        logger.warning("Batch line %s (%s) failed: %s", requirement_id, item_name, exc)
        result.failed.append(
            BatchFailure(requirement_id=requirement_id, item_name=item_name, code=exc.code, message=exc.message)
        )

    # PUBLIC_INTERFACE
    async def list_requirements(
        self, *, sales_order_id: Optional[UUID] = None, limit: int = 100, offset: int = 0
    ) -> List[Tuple[StockRequirement, bool]]:
        """Requirements ordered critical, shortage, sufficient, each with its open-requisition flag."""
        async with self.unit_of_work():
            return await self.requirements.list_requirements(
                sales_order_id=sales_order_id, limit=limit, offset=offset
            )

    # PUBLIC_INTERFACE
    async def summary(self) -> Dict[str, int]:
        """Requirement counts per tier and total shortfall units."""
        async with self.unit_of_work():
            return await self.requirements.summarize()
