from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from procurement_engine.db.models.audit import AuditEntry
from .base import BaseRepository


class AuditRepository(BaseRepository):
    """Write-mostly sink for audit entries."""

    async def append(
        self,
        *,
        actor_id: str,
        description: str,
        module: str,
        action_type: str,
        requisition_id: Optional[UUID] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            actor_id=actor_id,
            description=description,
            module=module,
            action_type=action_type,
            requisition_id=requisition_id,
        )
        await self.add(entry)
        await self.flush()
        return entry

    async def list_for_requisition(self, requisition_id: UUID) -> List[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(AuditEntry.requisition_id == requisition_id)
            .order_by(AuditEntry.created_at.asc())
        )
        res = await self.scalars(stmt)
        return list(res)
