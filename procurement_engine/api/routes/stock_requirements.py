from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.api.routes import MANAGE_ROLES, VIEW_ROLES
from procurement_engine.core.deps import get_db_session, require_roles
from procurement_engine.core.security import Actor
from procurement_engine.schemas.procurement import (
    BatchResultRead,
    RecalculationRead,
    RequirementOutcomeRead,
    RequirementSummaryRead,
    StockRequirementRead,
)
from procurement_engine.services.stock_requirements import StockRequirementService

router = APIRouter(prefix="/stock-requirements", tags=["Stock Requirements"])


def _requirement_read(row, has_open: bool) -> StockRequirementRead:
    read = StockRequirementRead.model_validate(row)
    read.has_open_requisition = has_open
    return read


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[StockRequirementRead],
    summary="List stock requirements",
    description="Requirements ordered critical, shortage, sufficient, each flagged when an open requisition covers it.",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def list_stock_requirements(
    session: AsyncSession = Depends(get_db_session),
    sales_order_id: Optional[UUID] = Query(None, description="Restrict to one sales order"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[StockRequirementRead]:
    rows = await StockRequirementService(session).list_requirements(
        sales_order_id=sales_order_id, limit=limit, offset=offset
    )
    return [_requirement_read(row, flag) for row, flag in rows]


# PUBLIC_INTERFACE
@router.get(
    "/summary",
    response_model=RequirementSummaryRead,
    summary="Stock requirement summary",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def stock_requirement_summary(
    session: AsyncSession = Depends(get_db_session),
) -> RequirementSummaryRead:
    return RequirementSummaryRead(**await StockRequirementService(session).summary())


# PUBLIC_INTERFACE
@router.post(
    "/sales-orders/{sales_order_id}/recalculate",
    response_model=RecalculationRead,
    summary="Recalculate sales order requirements",
    description="Replace the order's requirement rows with required vs current stock per item.",
)
async def recalculate_stock_requirements(
    sales_order_id: UUID = Path(..., description="Sales order id"),
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> RecalculationRead:
    result = await StockRequirementService(session).recalculate_stock_requirement(sales_order_id, actor)
    return RecalculationRead(
        sales_order_id=result.sales_order_id,
        shortage_count=result.shortage_count,
        requirements=[StockRequirementRead.model_validate(r) for r in result.requirements],
    )


# PUBLIC_INTERFACE
@router.post(
    "/{requirement_id}/generate-requisition",
    response_model=RequirementOutcomeRead,
    summary="Generate requisition for a requirement",
    description=(
        "Create a requisition for the requirement's shortfall against current stock. "
        "Returns created=false when an open requisition already covers it, unless fail_if_open is set (409)."
    ),
)
async def generate_requisition(
    requirement_id: UUID = Path(..., description="Stock requirement id"),
    fail_if_open: bool = Query(False, description="Respond 409 instead of a no-op when a requisition is already open"),
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> RequirementOutcomeRead:
    outcome = await StockRequirementService(session).generate_requisition(
        requirement_id, actor, fail_if_open=fail_if_open
    )
    return RequirementOutcomeRead.model_validate(outcome)


# PUBLIC_INTERFACE
@router.post(
    "/sales-orders/{sales_order_id}/batch-generate",
    response_model=BatchResultRead,
    summary="Generate requisitions for all shortfall lines",
    description="Each line commits on its own; failed lines are reported without aborting the batch.",
)
async def batch_generate_requisitions(
    sales_order_id: UUID = Path(..., description="Sales order id"),
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> BatchResultRead:
    result = await StockRequirementService(session).batch_generate_requisitions(sales_order_id, actor)
    return BatchResultRead.model_validate(result)
