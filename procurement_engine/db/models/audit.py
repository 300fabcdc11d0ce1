from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from procurement_engine.db.base import Base, UUIDPkMixin, TimestampMixin


class AuditEntry(UUIDPkMixin, TimestampMixin, Base):
    """Append-only audit trail entry."""
    __tablename__ = "audit_entries"

    actor_id: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    module: Mapped[str] = mapped_column(Text, nullable=False)
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    # Plain reference; audit rows outlive the records they describe.
    requisition_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
