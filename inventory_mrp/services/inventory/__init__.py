"""Inventory Services - stock ledger, lot allocation, movements and alerts"""

from .ledger import LedgerStore
from .lot_allocator import LotAllocator
from .stock_movements import StockMovementService
from .alerts import AlertService

__all__ = [
    "LedgerStore",
    "LotAllocator",
    "StockMovementService",
    "AlertService",
]
