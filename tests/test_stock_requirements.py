"""
Tests for the sales-order driven path: requirement recompute, single
requisition generation and the partial-failure tolerant batch.
"""

from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from procurement_engine.core.exceptions import AlreadyExistsError, NotFoundError, PersistenceFailure
from procurement_engine.db.models.procurement import PurchaseRequisition, StockRequirement
from procurement_engine.services.requisitions import RequisitionGenerator
from procurement_engine.services.stock_requirements import StockRequirementService

from .conftest import fixed_clock

TODAY = date(2026, 3, 2)


def service(session) -> StockRequirementService:
    return StockRequirementService(
        session, generator=RequisitionGenerator(session, clock=fixed_clock), today=lambda: TODAY
    )


@pytest.fixture
async def order(catalog):
    panel = await catalog.item("PANEL", on_hand=12)
    clamp = await catalog.item("CLAMP", on_hand=0)
    inverter = await catalog.item("INVERTER", on_hand=5)
    return await catalog.sales_order(
        "SO-0100",
        [(panel, 10), (clamp, 8), (inverter, 1), (panel, 5)],
    )


# =============================================================================
# Recompute
# =============================================================================


class TestRecalculate:

    async def test_sums_lines_and_classifies(self, session, order, buyer):
        result = await service(session).recalculate_stock_requirement(order.id, buyer)

        assert len(result.requirements) == 3
        assert result.shortage_count == 2
        rows = sorted(result.requirements, key=lambda r: r.required_quantity)
        inverter, clamp, panel = rows
        assert (panel.required_quantity, panel.available_quantity, panel.shortfall_quantity) == (15, 12, 3)
        assert panel.status == "shortage"
        assert (clamp.shortfall_quantity, clamp.status) == (8, "critical")
        assert (inverter.shortfall_quantity, inverter.status) == (0, "sufficient")

    async def test_recompute_replaces_rows(self, session, order, catalog, buyer):
        svc = service(session)
        await svc.recalculate_stock_requirement(order.id, buyer)
        await svc.recalculate_stock_requirement(order.id, buyer)

        assert await catalog.count(StockRequirement) == 3

    async def test_unknown_order(self, session, buyer):
        with pytest.raises(NotFoundError):
            await service(session).recalculate_stock_requirement(uuid4(), buyer)

    async def test_order_without_lines(self, session, catalog, buyer):
        empty = await catalog.sales_order("SO-EMPTY", [])
        with pytest.raises(NotFoundError):
            await service(session).recalculate_stock_requirement(empty.id, buyer)


# =============================================================================
# Single generation
# =============================================================================


async def requirement_for(session, order, buyer, status):
    result = await service(session).recalculate_stock_requirement(order.id, buyer)
    return next(r for r in result.requirements if r.status == status)


class TestGenerateRequisition:

    async def test_creates_requisition_for_shortfall(self, session, order, buyer):
        clamp = await requirement_for(session, order, buyer, "critical")

        outcome = await service(session).generate_requisition(clamp.id, buyer)

        assert outcome.created
        assert outcome.item_name == "Clamp"
        assert outcome.number == "PR-2026-000001"
        assert outcome.quantity == 8
        assert outcome.urgency == "critical"

    async def test_shortage_tier_gives_high_urgency(self, session, order, buyer):
        panel = await requirement_for(session, order, buyer, "shortage")

        outcome = await service(session).generate_requisition(panel.id, buyer)

        assert outcome.quantity == 3
        assert outcome.urgency == "high"

    async def test_close_installation_escalates(self, session, catalog, buyer):
        rail = await catalog.item("RAIL", on_hand=2)
        urgent = await catalog.sales_order("SO-0200", [(rail, 6)], installation_date=date(2026, 3, 6))
        result = await service(session).recalculate_stock_requirement(urgent.id, buyer)

        outcome = await service(session).generate_requisition(result.requirements[0].id, buyer)

        assert outcome.urgency == "critical"

    async def test_repeat_is_a_no_op(self, session, order, buyer, catalog):
        clamp = await requirement_for(session, order, buyer, "critical")
        svc = service(session)

        first = await svc.generate_requisition(clamp.id, buyer)
        second = await svc.generate_requisition(clamp.id, buyer)

        assert first.created
        assert not second.created
        assert second.number == first.number
        assert await catalog.count(PurchaseRequisition) == 1

    async def test_fail_if_open(self, session, order, buyer):
        clamp = await requirement_for(session, order, buyer, "critical")
        svc = service(session)
        await svc.generate_requisition(clamp.id, buyer)

        with pytest.raises(AlreadyExistsError) as exc_info:
            await svc.generate_requisition(clamp.id, buyer, fail_if_open=True)

        assert exc_info.value.number == "PR-2026-000001"

    async def test_stock_received_since_recompute(self, session, session_factory, order, catalog, buyer):
        panel = await requirement_for(session, order, buyer, "shortage")
        await catalog.set_stock(panel.item_id, 40)

        outcome = await service(session).generate_requisition(panel.id, buyer)

        assert outcome.no_shortfall
        assert not outcome.created
        assert await catalog.count(PurchaseRequisition) == 0
        async with session_factory() as check:
            refreshed = await check.get(StockRequirement, panel.id)
            assert (refreshed.shortfall_quantity, refreshed.status) == (0, "sufficient")

    async def test_unknown_requirement(self, session, buyer):
        with pytest.raises(NotFoundError):
            await service(session).generate_requisition(uuid4(), buyer)


# =============================================================================
# Listing and summary
# =============================================================================


class TestListing:

    async def test_list_flags_open_requisitions(self, session, order, buyer):
        clamp = await requirement_for(session, order, buyer, "critical")
        svc = service(session)
        await svc.generate_requisition(clamp.id, buyer)

        rows = await svc.list_requirements(sales_order_id=order.id)

        assert [row.status for row, _ in rows] == ["critical", "shortage", "sufficient"]
        assert [flag for _, flag in rows] == [True, False, False]

    async def test_summary(self, session, order, buyer):
        svc = service(session)
        await svc.recalculate_stock_requirement(order.id, buyer)

        summary = await svc.summary()

        assert summary == {
            "total": 3,
            "sufficient": 1,
            "shortage": 1,
            "critical": 1,
            "total_shortfall_units": 11,
        }


# =============================================================================
# Batch
# =============================================================================


@pytest.fixture
async def five_line_order(catalog):
    parts = [await catalog.item(f"PART-{n}", on_hand=1) for n in range(1, 6)]
    return await catalog.sales_order("SO-0500", [(part, 4) for part in parts])


class TestBatchGenerate:

    async def test_creates_one_per_shortfall_line(self, session, five_line_order, buyer):
        svc = service(session)
        await svc.recalculate_stock_requirement(five_line_order.id, buyer)

        result = await svc.batch_generate_requisitions(five_line_order.id, buyer)

        assert len(result.success) == 5
        assert result.skipped == [] and result.failed == []
        assert all(o.quantity == 3 for o in result.success)

    async def test_rerun_skips_covered_lines(self, session, five_line_order, buyer):
        svc = service(session)
        await svc.recalculate_stock_requirement(five_line_order.id, buyer)
        await svc.batch_generate_requisitions(five_line_order.id, buyer)

        again = await svc.batch_generate_requisitions(five_line_order.id, buyer)

        assert again.success == []
        assert len(again.skipped) == 5

    async def test_failed_line_does_not_abort_batch(self, session, five_line_order, catalog, buyer, fail_audit):
        svc = service(session)
        await svc.recalculate_stock_requirement(five_line_order.id, buyer)
        fail_audit(3)

        result = await svc.batch_generate_requisitions(five_line_order.id, buyer)

        assert len(result.success) == 4
        assert len(result.failed) == 1
        assert result.failed[0].code == "PERSISTENCE_FAILURE"
        committed = await catalog.requisitions()
        assert [r.number for r in committed] == [f"PR-2026-00000{n}" for n in range(1, 5)]
        assert {o.requisition_id for o in result.success} == {r.id for r in committed}

    async def test_failed_line_succeeds_on_rerun(
        self, session, five_line_order, catalog, buyer, fail_audit, monkeypatch
    ):
        svc = service(session)
        await svc.recalculate_stock_requirement(five_line_order.id, buyer)
        fail_audit(2)
        first = await svc.batch_generate_requisitions(five_line_order.id, buyer)
        monkeypatch.undo()

        second = await svc.batch_generate_requisitions(five_line_order.id, buyer)

        assert len(first.failed) == 1
        assert [o.item_name for o in second.success] == [first.failed[0].item_name]
        assert len(second.skipped) == 4
        assert await catalog.count(PurchaseRequisition) == 5

    async def test_unavailable_store_aborts(self, session, five_line_order, catalog, buyer, fail_audit):
        svc = service(session)
        await svc.recalculate_stock_requirement(five_line_order.id, buyer)
        fail_audit(2, unavailable=True)

        with pytest.raises(PersistenceFailure) as exc_info:
            await svc.batch_generate_requisitions(five_line_order.id, buyer)

        assert exc_info.value.unavailable
        assert await catalog.count(PurchaseRequisition) == 1

    async def test_unknown_order(self, session, buyer):
        with pytest.raises(NotFoundError):
            await service(session).batch_generate_requisitions(uuid4(), buyer)
