"""
Lot Allocator
Plans FEFO/FIFO consumption across a material's lots
"""
from typing import List, Tuple
from decimal import Decimal
from sqlalchemy.orm import Session

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.exceptions import InvalidQuantity, AllocationFailed
from inventory_mrp.models.inventory import Material, StockLot
from inventory_mrp.schemas.inventory import LotConsumption, LotStatus
from inventory_mrp.services.business_logic import QuantityCalculationService, ZERO
from .ledger import LedgerStore
import logging

logger = logging.getLogger("inventory_mrp.inventory")

to_quantity = QuantityCalculationService.to_quantity


class LotAllocator:
    """
    Lot allocation for outbound movements

    Approved lots with stock are taken earliest expiry first; lots without
    an expiry date come after dated ones, and ties go to the oldest lot.
    The unlotted balance is drawn last. The allocator only plans: the
    movement service applies the consumptions it returns.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx
        self.ledger = LedgerStore(db, ctx)

    def allocate(self, material: Material, required_qty: Decimal) -> List[LotConsumption]:
        """
        Plan consumption of required_qty from the material's lots

        Args:
            material: Locked material row
            required_qty: Quantity to consume (must be positive)

        Returns:
            Consumptions in allocation order, summing to required_qty

        Raises:
            InvalidQuantity: required_qty is zero or negative
            AllocationFailed: lots cannot cover the request
        """
        required = to_quantity(required_qty)
        if required <= 0:
            raise InvalidQuantity(required_qty)

        consumptions, shortfall = self._plan(material, required, refresh=False)

        if shortfall > 0:
            # Another writer may have moved lots since this session loaded them
            logger.info(
                f"Allocation for {material.code} short by {shortfall}, rescanning lots"
            )
            self.db.flush()
            consumptions, shortfall = self._plan(material, required, refresh=True)

        if shortfall > 0:
            logger.warning(
                f"Allocation failed for {material.code}: requested {required}, short {shortfall}"
            )
            raise AllocationFailed(material.name, material.current_stock, required, shortfall)

        return consumptions

    def available_lots(self, material: Material, refresh: bool = False) -> List[StockLot]:
        """Approved lots with stock, locked, in FEFO/FIFO order"""
        query = self.db.query(StockLot).filter(
            StockLot.organization_id == self.ctx.organization_id,
            StockLot.material_id == material.id,
            StockLot.status == LotStatus.APPROVED.value,
            StockLot.current_quantity > 0
        ).order_by(
            StockLot.expiration_date.asc().nulls_last(),
            StockLot.created_at.asc(),
            StockLot.id.asc()
        ).with_for_update()

        if refresh:
            query = query.populate_existing()

        return query.all()

    def unlotted_balance(self, material: Material) -> Decimal:
        """Ledger quantity not held by any lot"""
        unlotted = self.ledger.ledger_balance(material.id) - self.ledger.lot_balance(material.id)
        return unlotted if unlotted > 0 else ZERO

    def _plan(self, material: Material, required: Decimal,
              refresh: bool) -> Tuple[List[LotConsumption], Decimal]:
        remaining = required
        consumptions: List[LotConsumption] = []

        for lot in self.available_lots(material, refresh=refresh):
            if remaining <= 0:
                break
            available = to_quantity(lot.current_quantity)
            take = available if available < remaining else remaining
            consumptions.append(LotConsumption(
                lot_id=lot.id,
                lot_number=lot.lot_number,
                quantity=take
            ))
            remaining -= take

        if remaining > 0:
            unlotted = to_quantity(self.unlotted_balance(material))
            if unlotted > 0:
                take = unlotted if unlotted < remaining else remaining
                consumptions.append(LotConsumption(lot_id=None, lot_number=None, quantity=take))
                remaining -= take

        return consumptions, to_quantity(remaining)
