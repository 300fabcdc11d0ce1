from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DisconnectionError, InterfaceError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from procurement_engine.core.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


def _is_unavailable(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, (DisconnectionError, InterfaceError)):
        return True
    return bool(getattr(exc, "connection_invalidated", False))


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services should keep business logic and orchestration, delegating data access
    to repositories. Repositories never commit; services own the transaction
    through unit_of_work().
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Run the enclosed block atomically.

        Opens a transaction when the session has none, otherwise a SAVEPOINT
        inside the caller's transaction. Any SQLAlchemy error rolls the block
        back and is re-raised as PersistenceFailure.
        """
        if self.session.in_transaction():
            tx = self.session.begin_nested()
        else:
            tx = self.session.begin()
        try:
            async with tx:
                yield self.session
        except SQLAlchemyError as exc:
            unavailable = _is_unavailable(exc)
            logger.error("Unit of work rolled back: %s", exc.__class__.__name__, exc_info=exc)
            raise PersistenceFailure(
                f"Store error: {exc.__class__.__name__}", unavailable=unavailable
            ) from exc
