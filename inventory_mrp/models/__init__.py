"""
Inventory MRP SQLAlchemy Models
"""

# Import all models to ensure they are registered with SQLAlchemy
from .inventory import Material, StockLot, StockTransaction, InventoryAlert
from .production import (
    Product, BOMHeader, BOMItem, ProductionOrder, MaterialReservation, OrderStatusHistory,
    ProductionEntry
)

__all__ = [
    "Material",
    "StockLot",
    "StockTransaction",
    "InventoryAlert",
    "Product",
    "BOMHeader",
    "BOMItem",
    "ProductionOrder",
    "MaterialReservation",
    "OrderStatusHistory",
    "ProductionEntry",
]
