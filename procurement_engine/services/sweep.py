from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.security import Actor, system_actor
from procurement_engine.core.settings import get_app_settings
from procurement_engine.repositories.catalog import ItemRepository
from procurement_engine.services.base import BaseService
from procurement_engine.services.explosion import BomService, compute_buildability, find_cycle
from procurement_engine.services.requisitions import (
    GenerationResult,
    RequisitionContext,
    RequisitionGenerator,
)
from procurement_engine.services.shortage import (
    bom_urgency,
    classify_shortage,
    low_stock_urgency,
    target_build_quantity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatedRequisition:
    requisition_id: UUID
    number: str
    item_sku: str
    quantity: int
    urgency: str
    source: str


@dataclass
class SweepReport:
    assemblies_scanned: int = 0
    shortages_found: int = 0
    requisitions_created: List[CreatedRequisition] = field(default_factory=list)
    skipped_existing: int = 0
    skipped_cyclic: List[str] = field(default_factory=list)


class SweepOrchestrator(BaseService):
    """
    Catalog-wide sweeps. Each sweep runs in a single transaction: if any
    requisition fails to persist, nothing from that run is committed.
    """

    def __init__(
        self,
        session: AsyncSession,
        generator: Optional[RequisitionGenerator] = None,
        minimum_batch_size: Optional[int] = None,
    ) -> None:
        super().__init__(session)
        self.generator = generator or RequisitionGenerator(session)
        self.bom = BomService(session)
        self.items = ItemRepository(session)
        if minimum_batch_size is None:
            minimum_batch_size = get_app_settings().MINIMUM_BATCH_SIZE
        self.minimum_batch_size = minimum_batch_size

    def _record(self, report: SweepReport, outcome: GenerationResult, item_sku: str, source: str) -> None:
        if outcome.created:
            report.requisitions_created.append(
                CreatedRequisition(
                    requisition_id=outcome.requisition_id,
                    number=outcome.number,
                    item_sku=item_sku,
                    quantity=outcome.quantity,
                    urgency=outcome.urgency,
                    source=source,
                )
            )
        else:
            report.skipped_existing += 1

    # PUBLIC_INTERFACE
    async def run_full_sweep(self, actor: Optional[Actor] = None) -> SweepReport:
        """
        Check every active assembly against its build target and raise
        requisitions for bottleneck components that fall short.

        Assemblies whose BOM graph contains a cycle are skipped and listed in
        the report.
        """
        actor = actor or system_actor()
        report = SweepReport()
        async with self.unit_of_work():
            adjacency = await self.bom.load_adjacency()
            for assembly in await self.items.list_active_assemblies():
                report.assemblies_scanned += 1

                cycle = find_cycle(adjacency, assembly.id, self.bom.max_depth)
                if cycle:
                    logger.warning("Skipping %s: BOM cycle or excessive depth", assembly.sku)
                    report.skipped_cyclic.append(assembly.sku)
                    continue

                result = compute_buildability(await self.bom.load_components(assembly.id))
                target = target_build_quantity(assembly.reorder_level, self.minimum_batch_size)
                if result.max_buildable is None or result.max_buildable >= target or not result.bottlenecks:
                    continue

                logger.info(
                    "%s: can build %d of target %d", assembly.sku, result.max_buildable, target
                )
                for component in result.bottlenecks:
                    total_required = component.qty_per * target
                    assessment = classify_shortage(total_required, component.available, component.reorder_level)
                    if not assessment.has_shortfall:
                        continue
                    report.shortages_found += 1
                    family = assembly.product_family or "unassigned"
                    outcome = await self.generator.generate(
                        item_id=component.component_id,
                        quantity=assessment.shortfall,
                        context=RequisitionContext.for_assembly(assembly.id),
                        urgency=bom_urgency(component.available),
                        reason=(
                            f"Auto-generated: BOM component shortage for assembly '{assembly.name}' ({family}). "
                            f"Required: {total_required} {component.unit}, "
                            f"Available: {assessment.available} {component.unit}, "
                            f"Shortage: {assessment.shortfall} {component.unit}"
                        ),
                        actor=actor,
                    )
                    self._record(report, outcome, component.sku, assembly.sku)

        logger.info(
            "BOM sweep: %d assemblies, %d shortages, %d created, %d already open, %d cyclic",
            report.assemblies_scanned,
            report.shortages_found,
            len(report.requisitions_created),
            report.skipped_existing,
            len(report.skipped_cyclic),
        )
        return report

    # PUBLIC_INTERFACE
    async def run_low_stock_sweep(self, actor: Optional[Actor] = None) -> SweepReport:
        """Raise requisitions topping active parts at or below reorder level back up to it."""
        actor = actor or system_actor()
        report = SweepReport()
        async with self.unit_of_work():
            for item in await self.items.list_low_stock_parts():
                on_hand = max(0, item.on_hand_quantity)
                quantity = item.reorder_level - on_hand
                if quantity <= 0:
                    continue
                report.shortages_found += 1
                urgency = low_stock_urgency(on_hand, item.reorder_level)
                outcome = await self.generator.generate(
                    item_id=item.id,
                    quantity=quantity,
                    context=RequisitionContext.for_low_stock(item.id),
                    urgency=urgency,
                    reason=(
                        f"Auto-generated: low stock for '{item.name}'. "
                        f"On hand: {on_hand} {item.unit}, Reorder level: {item.reorder_level} {item.unit}"
                    ),
                    actor=actor,
                )
                self._record(report, outcome, item.sku, "low_stock")

        logger.info(
            "Low-stock sweep: %d short, %d created, %d already open",
            report.shortages_found,
            len(report.requisitions_created),
            report.skipped_existing,
        )
        return report
