"""Production Order API endpoints"""

from fastapi import APIRouter, Depends, status
from typing import List

from inventory_mrp.api import deps
from inventory_mrp.schemas.mrp import (
    ProductionOrderCreate, ProductionOrderRead, MaterialReservationRead,
    StatusChange, OrderStatusHistoryRead, ProductionEntryCreate, ProductionEntryResult
)
from inventory_mrp.services.mrp import ProductionOrderService

router = APIRouter()
entries_router = APIRouter()


@router.post("", response_model=ProductionOrderRead, status_code=status.HTTP_201_CREATED)
def create_production_order(
    order: ProductionOrderCreate,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    """
    Create a production order.

    The MRP plan (simulated on the fly when not supplied) spawns child
    orders for manufactured components and reservations for the rest.
    """
    return service.create_production_order(order)


@router.get("/{order_id}", response_model=ProductionOrderRead)
def get_production_order(
    order_id: int,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    return service.get_order(order_id)


@router.get("/{order_id}/children", response_model=List[ProductionOrderRead])
def list_child_orders(
    order_id: int,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    return service.list_children(order_id)


@router.post("/{order_id}/status", response_model=ProductionOrderRead)
def change_order_status(
    order_id: int,
    change: StatusChange,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    """Move an order through its lifecycle."""
    return service.change_status(order_id, change.status, produced_quantity=change.produced_quantity)


@router.get("/{order_id}/reservations", response_model=List[MaterialReservationRead])
def list_reservations(
    order_id: int,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    return service.list_reservations(order_id)


@router.get("/{order_id}/history", response_model=List[OrderStatusHistoryRead])
def order_status_history(
    order_id: int,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    return service.status_history(order_id)


@entries_router.post("", response_model=ProductionEntryResult, status_code=status.HTTP_201_CREATED)
def record_production_entry(
    entry: ProductionEntryCreate,
    service: ProductionOrderService = Depends(deps.get_production_service),
):
    """Backflush component consumption for produced units."""
    return service.record_production(entry.product_id, entry.quantity_produced, entry.production_entry_id)
