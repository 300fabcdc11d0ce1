"""
Pytest fixtures for the procurement engine test suite.

Provides:
- A throwaway SQLite database (aiosqlite) per test, with SAVEPOINT support
- Catalog/sales builders that commit through their own sessions
- Actors with the stock roles
- Store failure injection on audit writes
- An httpx client bound to the app and the test database
"""

from __future__ import annotations

import os
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

# Settings are read at import time by the API module.
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import httpx
import pytest
from sqlalchemy import event, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from procurement_engine.core.security import Actor, create_access_token
from procurement_engine.db.base import Base
from procurement_engine.db.models.catalog import BomLine, Item
from procurement_engine.db.models.procurement import PurchaseRequisition
from procurement_engine.db.models.sales import SalesOrder, SalesOrderLine
from procurement_engine.repositories.audit import AuditRepository

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'procurement.db'}"


@pytest.fixture
async def engine(database_url):
    engine = create_async_engine(database_url, poolclass=NullPool)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# Builders
# =============================================================================


class CatalogBuilder:
    """Writes fixture rows through short-lived sessions so services read committed data."""

    def __init__(self, session_factory) -> None:
        self._factory = session_factory

    async def _save(self, *rows):
        async with self._factory() as session:
            async with session.begin():
                session.add_all(rows)
        return rows

    async def item(
        self,
        sku: str,
        *,
        on_hand: int = 0,
        reorder_level: int = 0,
        is_assembly: bool = False,
        family: Optional[str] = None,
        unit: str = "pcs",
        status: str = "active",
        name: Optional[str] = None,
    ) -> Item:
        item = Item(
            sku=sku,
            name=name or sku.replace("-", " ").title(),
            product_family=family,
            unit=unit,
            on_hand_quantity=on_hand,
            reorder_level=reorder_level,
            is_assembly=is_assembly,
            status=status,
        )
        await self._save(item)
        return item

    async def bom(self, parent: Item, component: Item, qty_per: int) -> BomLine:
        line = BomLine(parent_item_id=parent.id, component_item_id=component.id, qty_per=qty_per)
        await self._save(line)
        return line

    async def sales_order(
        self,
        so_number: str,
        lines: Iterable[Tuple[Item, int]],
        *,
        installation_date: Optional[date] = None,
        customer_name: str = "Acme Solar",
    ) -> SalesOrder:
        order = SalesOrder(
            so_number=so_number,
            customer_name=customer_name,
            order_date=date(2026, 3, 1),
            installation_date=installation_date,
        )
        await self._save(order)
        rows = [
            SalesOrderLine(sales_order_id=order.id, line_no=n, item_id=item.id, quantity=qty)
            for n, (item, qty) in enumerate(lines, start=1)
        ]
        if rows:
            await self._save(*rows)
        return order

    async def set_stock(self, item_id: UUID, on_hand: int) -> None:
        async with self._factory() as session:
            async with session.begin():
                await session.execute(update(Item).where(Item.id == item_id).values(on_hand_quantity=on_hand))

    async def requisitions(self) -> List[PurchaseRequisition]:
        async with self._factory() as session:
            res = await session.scalars(select(PurchaseRequisition).order_by(PurchaseRequisition.number))
            return list(res)

    async def count(self, model) -> int:
        async with self._factory() as session:
            res = await session.execute(select(func.count()).select_from(model))
            return int(res.scalar_one())


@pytest.fixture
def catalog(session_factory) -> CatalogBuilder:
    return CatalogBuilder(session_factory)


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def buyer() -> Actor:
    return Actor(id="buyer-1", roles=frozenset({"procurement:manage"}))


@pytest.fixture
def approver() -> Actor:
    return Actor(id="approver-1", roles=frozenset({"procurement:approve"}))


@pytest.fixture
def viewer() -> Actor:
    return Actor(id="viewer-1", roles=frozenset({"procurement:view"}))


# =============================================================================
# Failure injection
# =============================================================================


@pytest.fixture
def fail_audit(monkeypatch):
    """
    Make the n-th audit write (1-based) fail with a store error.

    Usage::

        calls = fail_audit(3)                    # statement-level failure
        calls = fail_audit(2, unavailable=True)  # lost connection
    """

    def install(on_call: int, *, unavailable: bool = False):
        original = AuditRepository.append
        calls = {"count": 0}

        async def append(self, **kwargs):
            calls["count"] += 1
            if calls["count"] == on_call:
                raise OperationalError(
                    "INSERT INTO audit_entries",
                    {},
                    Exception("disk I/O error"),
                    connection_invalidated=unavailable,
                )
            return await original(self, **kwargs)

        monkeypatch.setattr(AuditRepository, "append", append)
        return calls

    return install


# =============================================================================
# API
# =============================================================================


@pytest.fixture
async def api_client(session_factory):
    """httpx client against the app, with sessions bound to the test database. Startup hooks do not run."""
    from procurement_engine.api.main import app
    from procurement_engine.db.session import get_async_session

    async def _test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _test_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build a bearer header for an actor id and its roles."""

    def build(subject: str, *roles: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(subject, roles=list(roles))}"}

    return build
