from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.exceptions import InvalidQuantityError, NotFoundError
from procurement_engine.core.security import Actor
from procurement_engine.core.settings import get_app_settings
from procurement_engine.db.base import utcnow
from procurement_engine.db.models.audit import AuditEntry
from procurement_engine.db.models.procurement import (
    PurchaseRequisition,
    RequisitionStatus,
    SourceType,
    Urgency,
)
from procurement_engine.repositories.audit import AuditRepository
from procurement_engine.repositories.catalog import ItemRepository
from procurement_engine.repositories.procurement import RequisitionRepository
from procurement_engine.services.base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequisitionContext:
    """What a requisition was raised for; one open requisition per item and context."""

    source_type: SourceType
    source_key: str
    sales_order_id: Optional[UUID] = None

    @classmethod
    def for_sales_order(cls, sales_order_id: UUID) -> "RequisitionContext":
        return cls(SourceType.SALES_ORDER, str(sales_order_id), sales_order_id)

    @classmethod
    def for_assembly(cls, assembly_id: UUID) -> "RequisitionContext":
        return cls(SourceType.BOM_ASSEMBLY, str(assembly_id))

    @classmethod
    def for_low_stock(cls, item_id: UUID) -> "RequisitionContext":
        return cls(SourceType.LOW_STOCK, str(item_id))


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of a generate call. ``created`` is False when an open requisition
    already covered the item and context; ``number``/``status`` then describe it.
    """

    created: bool
    requisition_id: Optional[UUID] = None
    number: Optional[str] = None
    status: Optional[str] = None
    urgency: Optional[str] = None
    quantity: Optional[int] = None


def format_requisition_number(year: int, sequence: int, prefix: Optional[str] = None) -> str:
    """PR-2026-000001 style number."""
    prefix = prefix or get_app_settings().REQUISITION_NUMBER_PREFIX
    return f"{prefix}-{year}-{sequence:06d}"


class RequisitionGenerator(BaseService):
    """
    Creates purchase requisitions idempotently.

    The open-requisition check, number assignment, insert and audit entry run
    in one unit of work. Inside a caller's transaction they run in a SAVEPOINT,
    so a failure here still rolls back the caller.
    """

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__(session)
        self.clock = clock
        self.requisitions = RequisitionRepository(session)
        self.items = ItemRepository(session)
        self.audit = AuditRepository(session)

    # PUBLIC_INTERFACE
    async def generate(
        self,
        *,
        item_id: UUID,
        quantity: int,
        context: RequisitionContext,
        urgency: Urgency,
        reason: str,
        actor: Actor,
    ) -> GenerationResult:
        """
        Create a pending requisition unless one is already open for the item and context.

        Returns:
            GenerationResult; created=False is the normal outcome on a repeated call.
        Raises:
            InvalidQuantityError: quantity <= 0
            NotFoundError: unknown item
            PersistenceFailure: store error, after rolling back everything this call wrote
        """
        if quantity <= 0:
            raise InvalidQuantityError(f"Requisition quantity must be greater than zero (got {quantity})")

        async with self.unit_of_work():
            item = await self.items.get_item(item_id)
            if item is None:
                raise NotFoundError("Item", item_id)

            existing = await self.requisitions.find_open_requisition(
                item_id, context.source_type.value, context.source_key
            )
            if existing is not None:
                logger.info(
                    "Open requisition %s (%s) already covers %s; nothing to do",
                    existing.number,
                    existing.status,
                    item.sku,
                )
                return _existing_result(existing)

            try:
                async with self.session.begin_nested():
                    requisition = await self._insert(item_id, quantity, context, urgency, reason, actor)
            except IntegrityError:
                # A concurrent generator won the open-context index; report its requisition.
                existing = await self.requisitions.find_open_requisition(
                    item_id, context.source_type.value, context.source_key
                )
                if existing is None:
                    raise
                logger.info("Lost race to %s for %s; nothing to do", existing.number, item.sku)
                return _existing_result(existing)

        logger.info(
            "Created requisition %s for %s x%d (%s, %s)",
            requisition.number,
            item.sku,
            quantity,
            urgency.value,
            context.source_type.value,
        )
        return GenerationResult(
            created=True,
            requisition_id=requisition.id,
            number=requisition.number,
            status=requisition.status,
            urgency=requisition.urgency,
            quantity=requisition.required_quantity,
        )

    async def _insert(
        self,
        item_id: UUID,
        quantity: int,
        context: RequisitionContext,
        urgency: Urgency,
        reason: str,
        actor: Actor,
    ) -> PurchaseRequisition:
        year = self.clock().year
        sequence = await self.requisitions.next_sequence_for_year(year)
        number = format_requisition_number(year, sequence)
        requisition = await self.requisitions.insert_requisition(
            PurchaseRequisition(
                number=number,
                item_id=item_id,
                sales_order_id=context.sales_order_id,
                source_type=context.source_type.value,
                source_key=context.source_key,
                required_quantity=quantity,
                requested_by=actor.id,
                status=RequisitionStatus.PENDING.value,
                urgency=urgency.value,
                reason=reason,
            )
        )
        await self.audit.append(
            actor_id=actor.id,
            description=f"Generated {number} for {quantity} units (Urgency: {urgency.value})",
            module="purchase_requisitions",
            action_type="create",
            requisition_id=requisition.id,
        )
        return requisition


def _existing_result(existing: PurchaseRequisition) -> GenerationResult:
    return GenerationResult(
        created=False,
        requisition_id=existing.id,
        number=existing.number,
        status=existing.status,
        urgency=existing.urgency,
        quantity=existing.required_quantity,
    )


class RequisitionQueryService(BaseService):
    """Read side for requisitions."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.requisitions = RequisitionRepository(session)
        self.audit = AuditRepository(session)

    # PUBLIC_INTERFACE
    async def get_requisition(self, requisition_id: UUID) -> Tuple[PurchaseRequisition, List[AuditEntry]]:
        """Return the requisition with its audit trail, oldest first."""
        async with self.unit_of_work():
            requisition = await self.requisitions.get_requisition(requisition_id)
            if requisition is None:
                raise NotFoundError("Requisition", requisition_id)
            trail = await self.audit.list_for_requisition(requisition_id)
        return requisition, trail

    # PUBLIC_INTERFACE
    async def list_requisitions(
        self,
        *,
        status: Optional[str] = None,
        item_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[PurchaseRequisition], Dict[str, int]]:
        """Requisitions ordered by status then urgency, with counts per status."""
        async with self.unit_of_work():
            rows = await self.requisitions.list_requisitions(
                status=status, item_id=item_id, limit=limit, offset=offset
            )
            counts = await self.requisitions.count_by_status()
        return rows, counts
