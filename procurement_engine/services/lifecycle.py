"""
Requisition lifecycle: pending -> approved | rejected, approved -> converted.

Rejected and converted are terminal. Authority is decided by a ``can_transition``
capability injected into the manager, so role policy lives in one place.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, FrozenSet, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.exceptions import (
    InsufficientAuthorityError,
    InvalidTransitionError,
    NotFoundError,
)
from procurement_engine.core.security import Actor
from procurement_engine.core.settings import get_app_settings
from procurement_engine.db.base import utcnow
from procurement_engine.db.models.procurement import PurchaseRequisition, RequisitionStatus
from procurement_engine.repositories.audit import AuditRepository
from procurement_engine.repositories.procurement import RequisitionRepository
from procurement_engine.services.base import BaseService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[RequisitionStatus, FrozenSet[RequisitionStatus]] = {
    RequisitionStatus.PENDING: frozenset({RequisitionStatus.APPROVED, RequisitionStatus.REJECTED}),
    RequisitionStatus.APPROVED: frozenset({RequisitionStatus.CONVERTED}),
    RequisitionStatus.REJECTED: frozenset(),
    RequisitionStatus.CONVERTED: frozenset(),
}

CanTransition = Callable[[Actor, PurchaseRequisition, RequisitionStatus], bool]


# PUBLIC_INTERFACE
def default_can_transition(actor: Actor, requisition: PurchaseRequisition, target: RequisitionStatus) -> bool:
    """Role policy from settings: approvers approve/reject, converters convert."""
    settings = get_app_settings()
    if target == RequisitionStatus.CONVERTED:
        return actor.has_any_role(settings.CONVERTER_ROLES)
    return actor.has_any_role(settings.APPROVER_ROLES)


class LifecycleManager(BaseService):
    """Applies lifecycle transitions under a row lock, with an audit entry per transition."""

    def __init__(self, session: AsyncSession, can_transition: Optional[CanTransition] = None) -> None:
        super().__init__(session)
        self.can_transition = can_transition or default_can_transition
        self.requisitions = RequisitionRepository(session)
        self.audit = AuditRepository(session)

    async def _transition(
        self,
        requisition_id: UUID,
        target: RequisitionStatus,
        actor: Actor,
        description: str,
        **values,
    ) -> PurchaseRequisition:
        async with self.unit_of_work():
            requisition = await self.requisitions.get_requisition(requisition_id, for_update=True)
            if requisition is None:
                raise NotFoundError("Requisition", requisition_id)

            current = RequisitionStatus(requisition.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value)
            if not self.can_transition(actor, requisition, target):
                raise InsufficientAuthorityError(actor.id, target.value)

            await self.requisitions.update_requisition_status(requisition, target.value, **values)
            await self.audit.append(
                actor_id=actor.id,
                description=f"{description} {requisition.number}",
                module="purchase_requisitions",
                action_type=target.value,
                requisition_id=requisition.id,
            )
        logger.info("Requisition %s %s -> %s", requisition.number, current.value, target.value)
        return requisition

    # PUBLIC_INTERFACE
    async def approve(self, requisition_id: UUID, actor: Actor) -> PurchaseRequisition:
        """Approve a pending requisition. Does not create a purchase order."""
        return await self._transition(
            requisition_id,
            RequisitionStatus.APPROVED,
            actor,
            "Approved",
            approved_by=actor.id,
            approved_at=utcnow(),
        )

    # PUBLIC_INTERFACE
    async def reject(self, requisition_id: UUID, actor: Actor, reason: Optional[str] = None) -> PurchaseRequisition:
        """Reject a pending requisition, optionally recording why."""
        return await self._transition(
            requisition_id,
            RequisitionStatus.REJECTED,
            actor,
            "Rejected",
            rejected_by=actor.id,
            rejected_at=utcnow(),
            rejection_reason=reason,
        )

    # PUBLIC_INTERFACE
    async def convert(
        self, requisition_id: UUID, actor: Actor, purchase_order_ref: Optional[str] = None
    ) -> PurchaseRequisition:
        """
        Mark an approved requisition as converted into a purchase order.

        The status is re-checked under the row lock, so a conversion racing a
        second conversion fails with InvalidTransitionError.
        """
        return await self._transition(
            requisition_id,
            RequisitionStatus.CONVERTED,
            actor,
            "Converted",
            converted_by=actor.id,
            converted_at=utcnow(),
            purchase_order_ref=purchase_order_ref,
        )
