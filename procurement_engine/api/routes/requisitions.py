from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.api.routes import MANAGE_ROLES, VIEW_ROLES
from procurement_engine.core.deps import get_current_actor, get_db_session, require_roles
from procurement_engine.core.security import Actor
from procurement_engine.schemas.procurement import (
    AuditEntryRead,
    ConvertRequest,
    RejectRequest,
    RequisitionDetailRead,
    RequisitionListRead,
    RequisitionRead,
    SweepReportRead,
)
from procurement_engine.services.lifecycle import LifecycleManager
from procurement_engine.services.requisitions import RequisitionQueryService
from procurement_engine.services.sweep import SweepOrchestrator

router = APIRouter(prefix="/requisitions", tags=["Requisitions"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=RequisitionListRead,
    summary="List requisitions",
    description="Requisitions ordered by status then urgency, with counts per status.",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def list_requisitions(
    session: AsyncSession = Depends(get_db_session),
    status: Optional[str] = Query(None, description="pending | approved | rejected | converted"),
    item_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> RequisitionListRead:
    rows, counts = await RequisitionQueryService(session).list_requisitions(
        status=status, item_id=item_id, limit=limit, offset=offset
    )
    return RequisitionListRead(items=[RequisitionRead.model_validate(r) for r in rows], counts=counts)


# PUBLIC_INTERFACE
@router.post(
    "/sweeps/bom",
    response_model=SweepReportRead,
    summary="Run BOM shortage sweep",
    description="Check every assembly and raise requisitions for bottleneck shortfalls. All-or-nothing.",
)
async def run_bom_sweep(
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> SweepReportRead:
    report = await SweepOrchestrator(session).run_full_sweep(actor)
    return SweepReportRead.model_validate(report)


# PUBLIC_INTERFACE
@router.post(
    "/sweeps/low-stock",
    response_model=SweepReportRead,
    summary="Run low-stock sweep",
    description="Raise requisitions for parts at or below reorder level. All-or-nothing.",
)
async def run_low_stock_sweep(
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> SweepReportRead:
    report = await SweepOrchestrator(session).run_low_stock_sweep(actor)
    return SweepReportRead.model_validate(report)


# PUBLIC_INTERFACE
@router.get(
    "/{requisition_id}",
    response_model=RequisitionDetailRead,
    summary="Get requisition",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def get_requisition(
    requisition_id: UUID = Path(..., description="Requisition id"),
    session: AsyncSession = Depends(get_db_session),
) -> RequisitionDetailRead:
    requisition, trail = await RequisitionQueryService(session).get_requisition(requisition_id)
    detail = RequisitionDetailRead.model_validate(requisition)
    detail.audit_trail = [AuditEntryRead.model_validate(e) for e in trail]
    return detail


# PUBLIC_INTERFACE
@router.post(
    "/{requisition_id}/approve",
    response_model=RequisitionRead,
    summary="Approve requisition",
    description="pending -> approved. 409 from any other status, 403 without approver authority.",
)
async def approve_requisition(
    requisition_id: UUID = Path(..., description="Requisition id"),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_db_session),
) -> RequisitionRead:
    requisition = await LifecycleManager(session).approve(requisition_id, actor)
    return RequisitionRead.model_validate(requisition)


# PUBLIC_INTERFACE
@router.post(
    "/{requisition_id}/reject",
    response_model=RequisitionRead,
    summary="Reject requisition",
    description="pending -> rejected, with an optional reason.",
)
async def reject_requisition(
    requisition_id: UUID = Path(..., description="Requisition id"),
    payload: Optional[RejectRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_db_session),
) -> RequisitionRead:
    requisition = await LifecycleManager(session).reject(requisition_id, actor, payload.reason if payload else None)
    return RequisitionRead.model_validate(requisition)


# PUBLIC_INTERFACE
@router.post(
    "/{requisition_id}/convert",
    response_model=RequisitionRead,
    summary="Convert requisition",
    description="approved -> converted once a purchase order has been raised for it.",
)
async def convert_requisition(
    requisition_id: UUID = Path(..., description="Requisition id"),
    payload: Optional[ConvertRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_db_session),
) -> RequisitionRead:
    requisition = await LifecycleManager(session).convert(
        requisition_id, actor, payload.purchase_order_ref if payload else None
    )
    return RequisitionRead.model_validate(requisition)
