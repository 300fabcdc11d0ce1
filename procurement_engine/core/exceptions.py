"""
Typed error taxonomy for the procurement engine.

Every failure a caller is expected to handle has its own class with a
machine-readable ``code`` so API handlers and batch reports can branch on type
rather than on message text.

    ProcurementError
    +-- NotFoundError
    +-- AlreadyExistsError
    +-- InvalidTransitionError
    +-- InsufficientAuthorityError
    +-- InvalidQuantityError
    +-- BomCycleError
    +-- PersistenceFailure
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class ProcurementError(Exception):
    """Base exception for procurement engine errors."""

    code = "PROCUREMENT_ERROR"
    default_message = "An error occurred in the procurement engine"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class NotFoundError(ProcurementError):
    """Unknown item, requisition, requirement or sales order."""

    code = "NOT_FOUND"
    default_message = "Entity not found"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found", {"entity": entity, "key": str(key)})


class AlreadyExistsError(ProcurementError):
    """An open requisition already covers the item and context."""

    code = "ALREADY_EXISTS"
    default_message = "An open requisition already exists"

    def __init__(self, number: Optional[str] = None, status: Optional[str] = None):
        self.number = number
        self.status = status
        message = self.default_message
        if number:
            message = f"Requisition {number} already open (status: {status})"
        super().__init__(message, {"number": number, "status": status})


class InvalidTransitionError(ProcurementError):
    """Lifecycle transition not allowed from the requisition's current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move requisition from '{current}' to '{requested}'",
            {"current": current, "requested": requested},
        )


class InsufficientAuthorityError(ProcurementError):
    """Actor lacks the role required for a lifecycle transition."""

    code = "INSUFFICIENT_AUTHORITY"

    def __init__(self, actor_id: str, requested: str):
        self.actor_id = actor_id
        self.requested = requested
        super().__init__(
            f"Actor '{actor_id}' may not move requisitions to '{requested}'",
            {"actor_id": actor_id, "requested": requested},
        )


class InvalidQuantityError(ProcurementError):
    """Quantity arguments outside their allowed range."""

    code = "INVALID_QUANTITY"
    default_message = "Quantity must be greater than zero"


class BomCycleError(ProcurementError):
    """BOM edges form a cycle."""

    code = "BOM_CYCLE"

    def __init__(self, path: Sequence[Any]):
        self.path = list(path)
        rendered = " -> ".join(str(p) for p in self.path)
        super().__init__(f"Circular BOM dependency: {rendered}", {"path": [str(p) for p in self.path]})


class PersistenceFailure(ProcurementError):
    """
    Store-level failure. The enclosing transaction has already been rolled back
    when this is raised.

    ``unavailable`` is True when the failure is a lost or refused connection
    rather than a statement-level error.
    """

    code = "PERSISTENCE_FAILURE"
    default_message = "Persistence failure"

    def __init__(self, message: Optional[str] = None, unavailable: bool = False):
        self.unavailable = unavailable
        super().__init__(message, {"unavailable": unavailable})
