"""
Inventory MRP Business Services
Core business logic services for the inventory ledger and MRP engine
"""

from .business_logic import QuantityCalculationService
from .inventory import LedgerStore, LotAllocator, StockMovementService, AlertService
from .mrp import BOMResolver, MRPExplosionEngine, ProductionOrderService

__all__ = [
    "QuantityCalculationService",
    "LedgerStore",
    "LotAllocator",
    "StockMovementService",
    "AlertService",
    "BOMResolver",
    "MRPExplosionEngine",
    "ProductionOrderService",
]
