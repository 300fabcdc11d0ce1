"""
Command-line entry point for scheduled sweeps.

Usage:
  python -m procurement_engine.sweep            # BOM shortage sweep
  python -m procurement_engine.sweep bom
  python -m procurement_engine.sweep low-stock
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import List
from uuid import uuid4

from procurement_engine.core.exceptions import ProcurementError
from procurement_engine.core.logging import configure_logging, log_context
from procurement_engine.core.security import system_actor
from procurement_engine.db.session import dispose_engine, get_session_maker
from procurement_engine.services.sweep import SweepOrchestrator, SweepReport

logger = logging.getLogger(__name__)

SWEEPS = ("bom", "low-stock")


async def run_sweep(kind: str) -> SweepReport:
    """Run one sweep in its own session."""
    try:
        async with get_session_maker()() as session:
            orchestrator = SweepOrchestrator(session)
            if kind == "low-stock":
                return await orchestrator.run_low_stock_sweep()
            return await orchestrator.run_full_sweep()
    finally:
        await dispose_engine()


# PUBLIC_INTERFACE
def main(argv: List[str] | None = None) -> int:
    """Run the requested sweep and print its created requisitions; returns the exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    kind = args[0] if args else "bom"
    if kind not in SWEEPS:
        print(f"Unsupported sweep: {kind}. Expected one of: {', '.join(SWEEPS)}")
        return 2

    configure_logging()
    with log_context(correlation_id=f"sweep-{kind}-{uuid4().hex[:8]}", actor_id=system_actor().id):
        try:
            report = asyncio.run(run_sweep(kind))
        except ProcurementError as exc:
            logger.error("Sweep '%s' aborted, nothing committed: %s", kind, exc)
            return 1

    print(
        f"{kind} sweep: scanned {report.assemblies_scanned} assemblies, "
        f"{report.shortages_found} shortages, {len(report.requisitions_created)} requisitions created"
    )
    for created in report.requisitions_created:
        print(f"  - {created.number}: {created.item_sku} x{created.quantity} ({created.urgency}, {created.source})")
    for sku in report.skipped_cyclic:
        print(f"  ! skipped {sku}: BOM cycle")
    return 0


if __name__ == "__main__":
    sys.exit(main())
