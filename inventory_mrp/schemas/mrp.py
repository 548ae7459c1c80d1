"""MRP and Production Order Schemas"""

from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# Enums
class MRPAction(str, Enum):
    PRODUCE = "PRODUCE"
    BUY = "BUY"
    STOCK = "STOCK"
    NONE = "NONE"


class ItemType(str, Enum):
    FINISHED = "FINISHED"
    INTERMEDIATE = "INTERMEDIATE"
    COMPONENT = "COMPONENT"


class Resolution(str, Enum):
    RESOLVED = "RESOLVED"
    BOM_NOT_FOUND = "BOM_NOT_FOUND"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    DEPTH_EXCEEDED = "DEPTH_EXCEEDED"


class OrderStatus(str, Enum):
    PLANNED = "PLANNED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONSUMED = "CONSUMED"
    RELEASED = "RELEASED"


# Plan Schemas
class MRPPlanItem(BaseModel):
    """
    One node of an exploded production plan

    Transient: built by the explosion engine, consumed by order creation,
    never stored.
    """
    id: str
    product_code: str
    name: str
    unit: str
    item_type: ItemType
    level: int
    parent_id: Optional[str] = None
    material_id: Optional[int] = None
    product_id: Optional[int] = None
    bom_id: Optional[int] = None
    required_qty: Decimal
    current_stock: Decimal
    net_requirement: Decimal
    action: MRPAction
    lead_time: int = 0
    resolution: Resolution = Resolution.RESOLVED
    cycle_path: Optional[List[str]] = None
    children: List["MRPPlanItem"] = []

    def walk(self):
        """Yield this node and every descendant, depth first"""
        yield self
        for child in self.children:
            yield from child.walk()


MRPPlanItem.model_rebuild()


class SimulateRequest(BaseModel):
    product_id: Optional[int] = None
    product_code: Optional[str] = None
    quantity: Decimal = Field(..., gt=0)

    @model_validator(mode='after')
    def check_product_reference(self):
        if self.product_id is None and not self.product_code:
            raise ValueError('product_id or product_code is required')
        return self


class BuildableRead(BaseModel):
    """Kitting result: whole units the current component stock can build"""
    product_id: int
    product_code: str
    buildable_quantity: int
    limiting_material_id: Optional[int] = None
    limiting_material_code: Optional[str] = None


# BOM Schemas
class BOMItemInput(BaseModel):
    material_id: int
    quantity_required: Decimal = Field(..., ge=0)
    waste_percentage: Decimal = Field(default=Decimal("0"), ge=0)
    sequence: Optional[int] = None


# Production Order Schemas
class ProductionOrderCreate(BaseModel):
    product_id: int
    target_quantity: Decimal = Field(..., gt=0)
    priority: OrderPriority = OrderPriority.NORMAL
    delivery_date: Optional[date] = None
    customer_name: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = None
    plan: Optional[MRPPlanItem] = Field(
        None, description="Previously simulated plan; exploded on the fly when omitted"
    )


class ProductionOrderRead(BaseModel):
    id: int
    order_number: Optional[str] = None
    product_id: int
    bom_id: Optional[int] = None
    parent_order_id: Optional[int] = None
    target_quantity: Decimal
    produced_quantity: Decimal
    status: OrderStatus
    priority: OrderPriority
    delivery_date: Optional[date] = None
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MaterialReservationRead(BaseModel):
    id: int
    production_order_id: int
    material_id: int
    quantity: Decimal
    status: ReservationStatus
    plan_action: Optional[MRPAction] = None

    model_config = ConfigDict(from_attributes=True)


class StatusChange(BaseModel):
    status: OrderStatus
    produced_quantity: Optional[Decimal] = Field(None, ge=0)


class OrderStatusHistoryRead(BaseModel):
    id: int
    order_id: int
    previous_status: OrderStatus
    new_status: OrderStatus
    changed_by: Optional[str] = None
    changed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Production Entry (backflush)
class ProductionEntryCreate(BaseModel):
    product_id: int
    quantity_produced: Decimal = Field(..., gt=0)
    production_entry_id: str = Field(..., min_length=1, max_length=64)


class ProductionEntryResult(BaseModel):
    production_entry_id: str
    product_id: int
    quantity_produced: Decimal
    consumed: List["ComponentConsumption"] = []


class ComponentConsumption(BaseModel):
    material_id: int
    quantity: Decimal
    current_stock: Decimal


ProductionEntryResult.model_rebuild()
