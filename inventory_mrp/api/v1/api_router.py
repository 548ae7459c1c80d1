"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from inventory_mrp.api.v1 import inventory, mrp, production
from inventory_mrp.schemas.common import ErrorResponse

api_router = APIRouter()

# Domain errors share one body shape
ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Record not found in the organization"},
    409: {"model": ErrorResponse, "description": "Business rule violation"},
}

# Inventory ledger routes
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"],
                          responses=ERROR_RESPONSES)

# MRP routes
api_router.include_router(mrp.router, prefix="/mrp", tags=["mrp"], responses=ERROR_RESPONSES)

# Production routes
api_router.include_router(production.router, prefix="/production-orders", tags=["production-orders"],
                          responses=ERROR_RESPONSES)
api_router.include_router(production.entries_router, prefix="/production-entries",
                          tags=["production-entries"], responses=ERROR_RESPONSES)
