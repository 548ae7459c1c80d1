"""
Inventory MRP Pydantic Schemas
Request/Response models for the inventory ledger and MRP API
"""

# Import all schemas to make them available
from .inventory import (
    MovementType, AdjustmentDirection, LotStatus, AlertType,
    MovementInput, MovementResult, LotConsumption, LotStatusUpdate,
    StockTransactionRead, StockLotRead, MaterialRead, ReconciliationRead,
    InventoryAlertRead
)
from .mrp import (
    MRPAction, ItemType, Resolution, OrderStatus, OrderPriority, ReservationStatus,
    MRPPlanItem, SimulateRequest, BuildableRead, BOMItemInput,
    ProductionOrderCreate, ProductionOrderRead, MaterialReservationRead,
    StatusChange, OrderStatusHistoryRead,
    ProductionEntryCreate, ProductionEntryResult, ComponentConsumption
)
from .common import ErrorResponse, HealthCheckResponse
