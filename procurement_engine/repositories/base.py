from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import Executable
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Shared query helpers for the procurement repositories.

    Repositories flush so generated ids and constraint violations surface
    inside the caller's unit of work, but they never commit or roll back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Exactly one row is expected; anything else is a store inconsistency."""
        result = await self.execute(statement, params)
        return result.scalar_one()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def add(self, entity: Any) -> None:
        self.session.add(entity)

    async def add_all(self, entities: Iterable[Any]) -> None:
        self.session.add_all(list(entities))

    async def flush(self) -> None:
        await self.session.flush()
