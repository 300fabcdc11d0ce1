from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.api.routes import MANAGE_ROLES, VIEW_ROLES
from procurement_engine.core.deps import get_db_session, require_roles
from procurement_engine.core.security import Actor
from procurement_engine.schemas.catalog import (
    BomLineCreate,
    BomLineRead,
    BuildabilityRead,
    ComponentAvailabilityRead,
    ExplosionNodeRead,
)
from procurement_engine.services.explosion import BomService

router = APIRouter(prefix="/catalog", tags=["Catalog"])


# PUBLIC_INTERFACE
@router.get(
    "/assemblies/{item_id}/buildability",
    response_model=BuildabilityRead,
    summary="Assembly buildability",
    description="Maximum buildable quantity of an assembly from current component stock, with its bottleneck components.",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def get_buildability(
    item_id: UUID = Path(..., description="Assembly item id"),
    session: AsyncSession = Depends(get_db_session),
) -> BuildabilityRead:
    item, result = await BomService(session).assess_assembly(item_id)
    bottleneck_ids = {c.component_id for c in result.bottlenecks}
    components = [
        ComponentAvailabilityRead(
            component_id=c.component_id,
            sku=c.sku,
            name=c.name,
            unit=c.unit,
            qty_per=c.qty_per,
            available=c.available,
            reorder_level=c.reorder_level,
            can_build=c.can_build,
            is_bottleneck=c.component_id in bottleneck_ids,
        )
        for c in result.components
    ]
    return BuildabilityRead(
        item_id=item.id,
        sku=item.sku,
        name=item.name,
        max_buildable=result.max_buildable,
        bottlenecks=[c for c in components if c.is_bottleneck],
        components=components,
    )


# PUBLIC_INTERFACE
@router.get(
    "/items/{item_id}/explosion",
    response_model=ExplosionNodeRead,
    summary="Multi-level BOM explosion",
    description="Expand the item's BOM into a tree sized for the requested build quantity.",
    dependencies=[Depends(require_roles(*VIEW_ROLES))],
)
async def get_explosion(
    item_id: UUID = Path(..., description="Item id"),
    quantity: int = Query(1, description="Units to build"),
    session: AsyncSession = Depends(get_db_session),
) -> ExplosionNodeRead:
    tree = await BomService(session).explode(item_id, quantity)
    return ExplosionNodeRead.model_validate(tree)


# PUBLIC_INTERFACE
@router.post(
    "/bom-lines",
    response_model=BomLineRead,
    status_code=201,
    summary="Add BOM line",
    description="Add a component to a parent item's BOM. Rejects non-positive quantities and edges that would close a cycle.",
)
async def create_bom_line(
    payload: BomLineCreate,
    actor: Actor = Depends(require_roles(*MANAGE_ROLES)),
    session: AsyncSession = Depends(get_db_session),
) -> BomLineRead:
    line = await BomService(session).add_bom_line(
        parent_item_id=payload.parent_item_id,
        component_item_id=payload.component_item_id,
        qty_per=payload.qty_per,
        actor=actor,
        version=payload.version,
        notes=payload.notes,
    )
    return BomLineRead.model_validate(line)
