"""MRP Services - BOM resolution, explosion and production orders"""

from .bom_resolver import BOMResolver
from .explosion import MRPExplosionEngine
from .production_orders import ProductionOrderService, STATUS_TRANSITIONS

__all__ = [
    "BOMResolver",
    "MRPExplosionEngine",
    "ProductionOrderService",
    "STATUS_TRANSITIONS",
]
