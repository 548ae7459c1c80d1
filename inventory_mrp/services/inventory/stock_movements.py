"""
Stock Movements Service
Applies IN / OUT_PROD / OUT_LOSS / ADJ movements as atomic units of work
"""
from typing import List, Optional, Tuple
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import text

from inventory_mrp.core.config import settings
from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.database import unit_of_work
from inventory_mrp.core.exceptions import (
    InvalidQuantity, MissingLotNumber, MaterialNotFound, LotNotFound,
    InsufficientStock, DuplicateLot, ValidationError
)
from inventory_mrp.models.inventory import Material, StockLot, StockTransaction
from inventory_mrp.schemas.inventory import (
    MovementInput, MovementResult, MovementType, AdjustmentDirection, LotStatus,
    LotConsumption, StockLotRead, StockTransactionRead
)
from inventory_mrp.services.business_logic import QuantityCalculationService
from .ledger import LedgerStore
from .lot_allocator import LotAllocator
from .alerts import AlertService
import logging

logger = logging.getLogger("inventory_mrp.inventory")

to_quantity = QuantityCalculationService.to_quantity


class StockMovementService:
    """
    Stock movement processing

    Every movement locks its material row, writes lots and ledger rows,
    recomputes the cached balance and runs the reorder check. Either all of
    that is committed or none of it.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx
        self.ledger = LedgerStore(db, ctx)
        self.allocator = LotAllocator(db, ctx)
        self.alerts = AlertService(db, ctx)

    def process_movement(self, movement: MovementInput) -> MovementResult:
        """
        Process one movement in its own unit of work

        Raises:
            InvalidQuantity, MissingLotNumber, MaterialNotFound, DuplicateLot,
            InsufficientStock, AllocationFailed
        """
        with unit_of_work(self.db):
            result = self.apply(movement)

        logger.info(
            f"Movement {result.type.value} material={result.material_id} qty={result.quantity} "
            f"balance={result.current_stock} operator={self.ctx.actor}"
        )
        return result

    def process_movements(self, movements: List[MovementInput]) -> List[MovementResult]:
        """Process several movements atomically: all are committed or none"""
        with unit_of_work(self.db):
            results = [self.apply(movement) for movement in movements]

        logger.info(f"Processed {len(results)} movements as one unit by {self.ctx.actor}")
        return results

    def apply(self, movement: MovementInput) -> MovementResult:
        """
        Apply a movement inside the caller's unit of work (no commit)
        """
        quantity = to_quantity(movement.quantity)
        if quantity <= 0:
            raise InvalidQuantity(movement.quantity)

        movement_type = MovementType(movement.type)
        if movement_type == MovementType.ADJ and movement.direction is None:
            raise ValidationError("Adjustment direction is required for ADJ movements")

        material = self._lock_material(movement.material_id)

        lot: Optional[StockLot] = None
        consumptions: List[LotConsumption] = []

        if movement_type == MovementType.IN:
            lot, transactions = self._receive(material, movement, quantity)
        elif movement.is_outbound:
            consumptions, transactions = self._consume(material, movement, quantity)
        elif movement.direction == AdjustmentDirection.INCREASE:
            # Unlotted correction
            transactions = [self.ledger.append(
                material, movement_type, quantity,
                related_entry_id=movement.related_entry_id,
                notes=movement.notes
            )]
        else:
            raise ValidationError(f"Unsupported movement type {movement_type}")

        balance = self.ledger.recompute_balance(material)
        alert = self.alerts.check_reorder(material)

        return MovementResult(
            material_id=material.id,
            type=movement_type,
            quantity=quantity,
            current_stock=balance,
            lot=StockLotRead.model_validate(lot) if lot is not None else None,
            consumptions=consumptions,
            transactions=[StockTransactionRead.model_validate(tx) for tx in transactions],
            alert_raised=alert is not None
        )

    def get_material(self, material_id: int) -> Material:
        material = self.db.query(Material).filter(
            Material.organization_id == self.ctx.organization_id,
            Material.id == material_id
        ).first()
        if material is None:
            raise MaterialNotFound(f"Material {material_id} not found")
        return material

    def list_lots(self, material_id: int, include_exhausted: bool = False) -> List[StockLot]:
        """Lots of a material in allocation order"""
        self.get_material(material_id)
        query = self.db.query(StockLot).filter(
            StockLot.organization_id == self.ctx.organization_id,
            StockLot.material_id == material_id
        )
        if not include_exhausted:
            query = query.filter(StockLot.current_quantity > 0)
        return query.order_by(
            StockLot.expiration_date.asc().nulls_last(),
            StockLot.created_at.asc(),
            StockLot.id.asc()
        ).all()

    def set_lot_status(self, lot_id: int, status: LotStatus) -> StockLot:
        """Block or release a lot for allocation; quantities are untouched"""
        with unit_of_work(self.db):
            lot = self.db.query(StockLot).filter(
                StockLot.organization_id == self.ctx.organization_id,
                StockLot.id == lot_id
            ).with_for_update().first()
            if lot is None:
                raise LotNotFound(f"Lot {lot_id} not found")
            previous = lot.status
            lot.status = LotStatus(status).value

        logger.info(f"Lot {lot.lot_number} status {previous} -> {lot.status} by {self.ctx.actor}")
        return lot

    def _lock_material(self, material_id: int) -> Material:
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {int(settings.LOCK_TIMEOUT_MS)}"))

        material = self.db.query(Material).filter(
            Material.organization_id == self.ctx.organization_id,
            Material.id == material_id
        ).with_for_update().populate_existing().first()

        if material is None:
            raise MaterialNotFound(f"Material {material_id} not found")
        return material

    def _receive(self, material: Material, movement: MovementInput,
                 quantity: Decimal) -> Tuple[StockLot, List[StockTransaction]]:
        if not movement.lot_number:
            raise MissingLotNumber()

        existing = self.db.query(StockLot.id).filter(
            StockLot.organization_id == self.ctx.organization_id,
            StockLot.material_id == material.id,
            StockLot.lot_number == movement.lot_number
        ).first()
        if existing is not None:
            raise DuplicateLot(f"Lot {movement.lot_number} already exists for {material.name}")

        # 1. Create the lot
        lot = StockLot(
            organization_id=self.ctx.organization_id,
            material_id=material.id,
            lot_number=movement.lot_number,
            supplier=movement.supplier,
            expiration_date=movement.expiration_date,
            initial_quantity=quantity,
            current_quantity=quantity,
            status=LotStatus.APPROVED.value
        )
        self.db.add(lot)
        self.db.flush()

        # 2. Ledger row
        transaction = self.ledger.append(
            material, MovementType.IN, quantity, lot=lot,
            related_entry_id=movement.related_entry_id,
            notes=movement.notes
        )
        return lot, [transaction]

    def _consume(self, material: Material, movement: MovementInput,
                 quantity: Decimal) -> Tuple[List[LotConsumption], List[StockTransaction]]:
        # 1. Cached balance check
        if material.current_stock < quantity:
            raise InsufficientStock(material.name, material.current_stock, quantity)

        # 2. Plan lot consumption
        consumptions = self.allocator.allocate(material, quantity)

        # 3. Decrement lots and write one ledger row per lot
        transactions = []
        for consumption in consumptions:
            lot = None
            if consumption.lot_id is not None:
                lot = self.db.get(StockLot, consumption.lot_id)
                lot.current_quantity = to_quantity(lot.current_quantity - consumption.quantity)
            transactions.append(self.ledger.append(
                material, movement.type, -consumption.quantity, lot=lot,
                related_entry_id=movement.related_entry_id,
                notes=movement.notes
            ))

        return consumptions, transactions
