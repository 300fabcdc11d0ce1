from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StockRequirementRead(BaseModel):
    """Required vs available stock for one item of a sales order."""
    id: UUID = Field(..., description="Requirement ID")
    sales_order_id: UUID = Field(..., description="Sales order")
    item_id: UUID = Field(..., description="Item")
    required_quantity: int = Field(..., description="Quantity required by the order")
    available_quantity: int = Field(..., description="On-hand quantity at last recompute")
    shortfall_quantity: int = Field(..., description="max(0, required - available)")
    status: str = Field(..., description="critical | shortage | sufficient")
    has_open_requisition: bool = Field(False, description="A pending/approved requisition covers this line")
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class RecalculationRead(BaseModel):
    """Result of recomputing a sales order's requirements."""
    sales_order_id: UUID
    shortage_count: int = Field(..., description="Lines with a positive shortfall")
    requirements: List[StockRequirementRead] = Field(default_factory=list)


class RequirementSummaryRead(BaseModel):
    """Requirement counts per tier."""
    total: int = 0
    critical: int = 0
    shortage: int = 0
    sufficient: int = 0
    total_shortfall_units: int = 0


class RequirementOutcomeRead(BaseModel):
    """Outcome of a generate call for one requirement."""
    requirement_id: UUID
    item_name: str
    created: bool = Field(..., description="False when nothing needed to be done")
    no_shortfall: bool = Field(False, description="Current stock already covers the requirement")
    requisition_id: Optional[UUID] = None
    number: Optional[str] = None
    status: Optional[str] = None
    urgency: Optional[str] = None
    quantity: Optional[int] = None

    class Config:
        from_attributes = True


class BatchFailureRead(BaseModel):
    requirement_id: UUID
    item_name: str
    code: str = Field(..., description="Error code")
    message: str

    class Config:
        from_attributes = True


class BatchResultRead(BaseModel):
    """Partitioned result of a batch generate."""
    sales_order_id: UUID
    success: List[RequirementOutcomeRead] = Field(default_factory=list)
    skipped: List[RequirementOutcomeRead] = Field(default_factory=list)
    failed: List[BatchFailureRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class RequisitionRead(BaseModel):
    """Purchase requisition read model."""
    id: UUID = Field(..., description="Requisition ID")
    number: str = Field(..., description="PR-<year>-<seq> number")
    item_id: UUID = Field(..., description="Item to procure")
    sales_order_id: Optional[UUID] = Field(None)
    source_type: str = Field(..., description="sales_order | bom_assembly | low_stock")
    source_key: str = Field(..., description="Identifier of the source within its type")
    required_quantity: int = Field(..., description="Quantity to procure")
    requested_by: str = Field(..., description="Requesting actor")
    status: str = Field(..., description="pending | approved | rejected | converted")
    urgency: str = Field(..., description="critical | high | medium | low")
    reason: Optional[str] = Field(None)
    approved_by: Optional[str] = Field(None)
    approved_at: Optional[datetime] = Field(None)
    rejected_by: Optional[str] = Field(None)
    rejected_at: Optional[datetime] = Field(None)
    rejection_reason: Optional[str] = Field(None)
    converted_by: Optional[str] = Field(None)
    converted_at: Optional[datetime] = Field(None)
    purchase_order_ref: Optional[str] = Field(None)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    class Config:
        from_attributes = True


class AuditEntryRead(BaseModel):
    actor_id: str
    description: str
    module: str
    action_type: str
    created_at: datetime

    class Config:
        from_attributes = True


class RequisitionDetailRead(RequisitionRead):
    """Requisition with its audit trail."""
    audit_trail: List[AuditEntryRead] = Field(default_factory=list)


class RequisitionListRead(BaseModel):
    items: List[RequisitionRead] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict, description="Requisitions per status")


class RejectRequest(BaseModel):
    """Reject payload."""
    reason: Optional[str] = Field(None, description="Why the requisition was rejected")


class ConvertRequest(BaseModel):
    """Convert payload."""
    purchase_order_ref: Optional[str] = Field(None, description="Reference of the purchase order created")


class CreatedRequisitionRead(BaseModel):
    requisition_id: UUID
    number: str
    item_sku: str
    quantity: int
    urgency: str
    source: str = Field(..., description="Assembly SKU or 'low_stock'")

    class Config:
        from_attributes = True


class SweepReportRead(BaseModel):
    """Summary of a catalog sweep."""
    assemblies_scanned: int = 0
    shortages_found: int = 0
    requisitions_created: List[CreatedRequisitionRead] = Field(default_factory=list)
    skipped_existing: int = Field(0, description="Shortages already covered by an open requisition")
    skipped_cyclic: List[str] = Field(default_factory=list, description="Assembly SKUs skipped for BOM cycles")

    class Config:
        from_attributes = True
