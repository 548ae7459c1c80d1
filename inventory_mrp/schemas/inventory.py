"""Inventory Ledger Schemas"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# Enums
class MovementType(str, Enum):
    IN = "IN"
    OUT_PROD = "OUT_PROD"
    OUT_LOSS = "OUT_LOSS"
    ADJ = "ADJ"


class AdjustmentDirection(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"


class LotStatus(str, Enum):
    APPROVED = "APPROVED"
    BLOCKED = "BLOCKED"


class AlertType(str, Enum):
    LOW_STOCK = "LOW_STOCK"


# Movement Schemas
class MovementInput(BaseModel):
    """
    One stock movement request

    quantity is always a magnitude; the sign comes from the movement type
    (and from direction for ADJ).
    """
    material_id: int
    type: MovementType
    quantity: Decimal
    direction: Optional[AdjustmentDirection] = Field(
        None, description="Required for ADJ movements"
    )
    lot_number: Optional[str] = Field(None, max_length=60)
    supplier: Optional[str] = Field(None, max_length=120)
    expiration_date: Optional[date] = None
    related_entry_id: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = None

    @field_validator('lot_number', 'supplier', 'related_entry_id')
    @classmethod
    def strip_blank(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None

    @property
    def is_outbound(self) -> bool:
        if self.type in (MovementType.OUT_PROD, MovementType.OUT_LOSS):
            return True
        return self.type == MovementType.ADJ and self.direction == AdjustmentDirection.DECREASE


class LotConsumption(BaseModel):
    """Planned draw from one lot; lot_id None is the unlotted balance"""
    lot_id: Optional[int] = None
    lot_number: Optional[str] = None
    quantity: Decimal


class StockTransactionRead(BaseModel):
    id: int
    material_id: int
    lot_id: Optional[int] = None
    type: MovementType
    quantity: Decimal
    related_entry_id: Optional[str] = None
    operator_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StockLotRead(BaseModel):
    id: int
    material_id: int
    lot_number: str
    supplier: Optional[str] = None
    expiration_date: Optional[date] = None
    initial_quantity: Decimal
    current_quantity: Decimal
    status: LotStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MovementResult(BaseModel):
    material_id: int
    type: MovementType
    quantity: Decimal
    current_stock: Decimal
    lot: Optional[StockLotRead] = None
    consumptions: List[LotConsumption] = []
    transactions: List[StockTransactionRead] = []
    alert_raised: bool = False


class LotStatusUpdate(BaseModel):
    status: LotStatus


# Material Schemas
class MaterialRead(BaseModel):
    id: int
    code: str
    name: str
    unit: str
    category: str
    group_name: Optional[str] = None
    current_stock: Decimal
    min_stock: Decimal
    unit_cost: Decimal
    lead_time_days: int

    model_config = ConfigDict(from_attributes=True)


class ReconciliationRead(BaseModel):
    """Cached balance versus ledger and lot totals for one material"""
    material_id: int
    cached_stock: Decimal
    ledger_balance: Decimal
    lot_balance: Decimal
    unlotted_balance: Decimal
    consistent: bool


# Alert Schemas
class InventoryAlertRead(BaseModel):
    id: int
    material_id: int
    alert_type: AlertType
    message: str
    stock_level: Decimal
    min_stock: Decimal
    is_resolved: bool
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
