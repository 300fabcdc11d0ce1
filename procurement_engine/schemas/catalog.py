from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ComponentAvailabilityRead(BaseModel):
    """Direct BOM component with its current stock."""
    component_id: UUID = Field(..., description="Component item id")
    sku: str = Field(..., description="Component SKU")
    name: str = Field(..., description="Component name")
    unit: str = Field(..., description="Unit of measure")
    qty_per: int = Field(..., description="Quantity per one parent unit")
    available: int = Field(..., description="Current on-hand quantity")
    reorder_level: int = Field(..., description="Component reorder level")
    can_build: Optional[int] = Field(None, description="Parent units this component alone can support")
    is_bottleneck: bool = Field(False, description="True when this component constrains the assembly")

    class Config:
        from_attributes = True


class BuildabilityRead(BaseModel):
    """Buildability of one assembly from current component stock."""
    item_id: UUID = Field(..., description="Assembly item id")
    sku: str = Field(..., description="Assembly SKU")
    name: str = Field(..., description="Assembly name")
    max_buildable: Optional[int] = Field(None, description="Units buildable now; null when unconstrained")
    bottlenecks: List[ComponentAvailabilityRead] = Field(default_factory=list)
    components: List[ComponentAvailabilityRead] = Field(default_factory=list)


class ExplosionNodeRead(BaseModel):
    """Node of a multi-level BOM explosion."""
    item_id: UUID
    sku: str
    name: str
    unit: str
    level: int = Field(..., description="0 for the exploded item")
    qty_per: int = Field(..., description="Quantity per one parent unit")
    total_required: int = Field(..., description="Quantity required for the requested build")
    available: int = Field(..., description="Current on-hand quantity")
    shortage: int = Field(..., description="max(0, total_required - available)")
    is_assembly: bool
    cyclic: bool = Field(False, description="Edge leads back onto its own path; not expanded")
    children: List["ExplosionNodeRead"] = Field(default_factory=list)

    class Config:
        from_attributes = True


class BomLineCreate(BaseModel):
    """Create BOM line payload."""
    parent_item_id: UUID = Field(..., description="Parent (assembly) item id")
    component_item_id: UUID = Field(..., description="Component item id")
    qty_per: int = Field(..., description="Quantity per one parent unit, > 0")
    version: str = Field("v1.0", description="BOM version label")
    notes: Optional[str] = Field(None)


class BomLineRead(BaseModel):
    """BOM line read model."""
    id: UUID
    parent_item_id: UUID
    component_item_id: UUID
    qty_per: int
    version: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
