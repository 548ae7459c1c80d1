"""
Ledger Store
Append-only stock transactions and the derived on-hand balance
"""
from typing import List, Optional
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy import func

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.exceptions import MaterialNotFound
from inventory_mrp.models.inventory import Material, StockLot, StockTransaction
from inventory_mrp.schemas.inventory import MovementType, ReconciliationRead
from inventory_mrp.services.business_logic import QuantityCalculationService
import logging

logger = logging.getLogger("inventory_mrp.inventory")

to_quantity = QuantityCalculationService.to_quantity


class LedgerStore:
    """
    Stock ledger

    Rows are never updated or deleted. Material.current_stock is written
    here and nowhere else, always as the full signed sum of the ledger.
    Nothing in this class commits; callers own the unit of work.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx

    def append(
        self,
        material: Material,
        movement_type: MovementType,
        quantity: Decimal,
        lot: Optional[StockLot] = None,
        related_entry_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> StockTransaction:
        """
        Append one signed ledger row

        Args:
            material: Material the movement belongs to
            movement_type: IN, OUT_PROD, OUT_LOSS or ADJ
            quantity: Signed quantity (negative for consumption)
            lot: Lot touched by the movement, None for unlotted corrections
            related_entry_id: Originating production/purchase/audit event

        Returns:
            The flushed StockTransaction
        """
        transaction = StockTransaction(
            organization_id=self.ctx.organization_id,
            material_id=material.id,
            lot_id=lot.id if lot is not None else None,
            type=MovementType(movement_type).value,
            quantity=to_quantity(quantity),
            related_entry_id=related_entry_id,
            operator_id=self.ctx.operator_id,
            notes=notes
        )
        self.db.add(transaction)
        self.db.flush()

        logger.debug(
            f"Ledger append: material={material.code} type={transaction.type} "
            f"qty={transaction.quantity} lot={transaction.lot_id} entry={related_entry_id}"
        )
        return transaction

    def ledger_balance(self, material_id: int) -> Decimal:
        """Signed sum of every ledger row for the material"""
        total = self.db.query(
            func.coalesce(func.sum(StockTransaction.quantity), 0)
        ).filter(
            StockTransaction.organization_id == self.ctx.organization_id,
            StockTransaction.material_id == material_id
        ).scalar()
        return to_quantity(total)

    def lot_balance(self, material_id: int) -> Decimal:
        """Quantity still held in lots, blocked lots included"""
        total = self.db.query(
            func.coalesce(func.sum(StockLot.current_quantity), 0)
        ).filter(
            StockLot.organization_id == self.ctx.organization_id,
            StockLot.material_id == material_id
        ).scalar()
        return to_quantity(total)

    def recompute_balance(self, material: Material) -> Decimal:
        """Overwrite the cached balance with the ledger sum"""
        self.db.flush()
        balance = self.ledger_balance(material.id)
        material.current_stock = balance
        self.db.flush()
        return balance

    def reconcile(self, material_id: int) -> ReconciliationRead:
        """
        Compare the cached balance with the ledger and the lots

        The cache must equal the ledger. The ledger may exceed the lots by
        the unlotted balance left by positive adjustments, never the reverse.
        """
        material = self.db.query(Material).filter(
            Material.organization_id == self.ctx.organization_id,
            Material.id == material_id
        ).first()
        if material is None:
            raise MaterialNotFound(f"Material {material_id} not found")

        cached = to_quantity(material.current_stock)
        ledger = self.ledger_balance(material_id)
        lots = self.lot_balance(material_id)
        unlotted = ledger - lots

        return ReconciliationRead(
            material_id=material_id,
            cached_stock=cached,
            ledger_balance=ledger,
            lot_balance=lots,
            unlotted_balance=unlotted,
            consistent=(cached == ledger and unlotted >= 0)
        )

    def history(self, material_id: int, limit: int = 100) -> List[StockTransaction]:
        """Ledger rows for a material, newest first"""
        return self.db.query(StockTransaction).filter(
            StockTransaction.organization_id == self.ctx.organization_id,
            StockTransaction.material_id == material_id
        ).order_by(
            StockTransaction.created_at.desc(),
            StockTransaction.id.desc()
        ).limit(limit).all()

    def entries_for(self, related_entry_id: str) -> List[StockTransaction]:
        """Ledger rows posted for one originating event"""
        return self.db.query(StockTransaction).filter(
            StockTransaction.organization_id == self.ctx.organization_id,
            StockTransaction.related_entry_id == related_entry_id
        ).order_by(StockTransaction.id).all()
