"""Inventory Ledger API endpoints"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from inventory_mrp.api import deps
from inventory_mrp.schemas.inventory import (
    MovementInput, MovementResult, MaterialRead, StockTransactionRead, StockLotRead,
    ReconciliationRead, LotStatusUpdate, InventoryAlertRead
)
from inventory_mrp.services.inventory import StockMovementService, AlertService, LedgerStore

router = APIRouter()


@router.post("/movements", response_model=MovementResult, status_code=status.HTTP_201_CREATED)
def create_movement(
    movement: MovementInput,
    service: StockMovementService = Depends(deps.get_movement_service),
):
    """
    Post a stock movement.

    IN creates a lot; OUT_PROD, OUT_LOSS and decreasing ADJ consume lots
    earliest expiry first; increasing ADJ is an unlotted correction.
    """
    return service.process_movement(movement)


@router.get("/materials/{material_id}", response_model=MaterialRead)
def get_material(
    material_id: int,
    service: StockMovementService = Depends(deps.get_movement_service),
):
    """Material with its cached on-hand balance."""
    return service.get_material(material_id)


@router.get("/materials/{material_id}/transactions", response_model=List[StockTransactionRead])
def list_transactions(
    material_id: int,
    limit: int = Query(100, ge=1, le=1000),
    service: StockMovementService = Depends(deps.get_movement_service),
    ledger: LedgerStore = Depends(deps.get_ledger),
):
    """Ledger rows for a material, newest first."""
    service.get_material(material_id)
    return ledger.history(material_id, limit=limit)


@router.get("/materials/{material_id}/lots", response_model=List[StockLotRead])
def list_lots(
    material_id: int,
    include_exhausted: bool = False,
    service: StockMovementService = Depends(deps.get_movement_service),
):
    """Lots of a material in allocation order."""
    return service.list_lots(material_id, include_exhausted=include_exhausted)


@router.get("/materials/{material_id}/reconciliation", response_model=ReconciliationRead)
def reconcile_material(
    material_id: int,
    ledger: LedgerStore = Depends(deps.get_ledger),
):
    """Compare the cached balance with the ledger and lot totals."""
    return ledger.reconcile(material_id)


@router.patch("/lots/{lot_id}/status", response_model=StockLotRead)
def update_lot_status(
    lot_id: int,
    update: LotStatusUpdate,
    service: StockMovementService = Depends(deps.get_movement_service),
):
    """Block or approve a lot for allocation."""
    return service.set_lot_status(lot_id, update.status)


@router.get("/alerts", response_model=List[InventoryAlertRead])
def list_alerts(
    include_resolved: bool = False,
    material_id: Optional[int] = None,
    alerts: AlertService = Depends(deps.get_alert_service),
):
    return alerts.list_alerts(include_resolved=include_resolved, material_id=material_id)


@router.post("/alerts/{alert_id}/resolve", response_model=InventoryAlertRead)
def resolve_alert(
    alert_id: int,
    alerts: AlertService = Depends(deps.get_alert_service),
):
    return alerts.resolve(alert_id)
