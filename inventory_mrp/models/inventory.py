"""
Inventory Models
SQLAlchemy models for materials, lots, the stock ledger and alerts
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text, Boolean,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from inventory_mrp.core.database import Base

QTY = Numeric(18, 4)


class Material(Base):
    """
    Material Master

    Raw materials and stocked sub-assemblies. current_stock is a cache of the
    signed ledger sum and is only written by the ledger recompute.
    """
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True, doc="Owning organization")

    # Identity
    code = Column(String(40), nullable=False, doc="Material code (may match a product code)")
    name = Column(String(120), nullable=False, doc="Material name")
    unit = Column(String(10), nullable=False, default='KG', doc="Unit of measure")
    category = Column(String(40), nullable=False, default='raw_material', doc="Material category")
    group_name = Column(String(60), doc="Grouping, e.g. resins, boxes, regrind")

    # Quantities
    current_stock = Column(QTY, nullable=False, default=0, doc="Cached ledger balance")
    min_stock = Column(QTY, nullable=False, default=0, doc="Reorder threshold")

    # Planning & cost
    unit_cost = Column(Numeric(18, 4), nullable=False, default=0, doc="Unit cost")
    lead_time_days = Column(Integer, nullable=False, default=0, doc="Purchase lead time in days")

    # Audit Trail
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    # Relationships
    lots = relationship("StockLot", back_populates="material")
    transactions = relationship("StockTransaction", back_populates="material")

    __table_args__ = (
        UniqueConstraint('organization_id', 'code', name='uq_materials_org_code'),
        CheckConstraint("min_stock >= 0", name='min_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Material {self.code} stock={self.current_stock}>"


class StockLot(Base):
    """Traceable batch of one material"""
    __tablename__ = "stock_lots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True)

    lot_number = Column(String(60), nullable=False, doc="Lot / batch number")
    supplier = Column(String(120), doc="Supplier name")
    expiration_date = Column(Date, doc="Expiration date (FEFO key)")

    initial_quantity = Column(QTY, nullable=False, doc="Quantity received")
    current_quantity = Column(QTY, nullable=False, doc="Quantity remaining")
    status = Column(String(16), nullable=False, default='APPROVED', doc="APPROVED or BLOCKED")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    material = relationship("Material", back_populates="lots")

    __table_args__ = (
        UniqueConstraint('organization_id', 'material_id', 'lot_number', name='uq_stock_lots_material_lot'),
        CheckConstraint("current_quantity >= 0", name='lot_quantity_non_negative'),
        CheckConstraint("current_quantity <= initial_quantity", name='lot_quantity_within_initial'),
        CheckConstraint("status IN ('APPROVED', 'BLOCKED')", name='lot_valid_status'),
        Index('idx_stock_lots_fefo', 'material_id', 'status', 'expiration_date', 'created_at'),
    )

    def __repr__(self):
        return f"<StockLot {self.lot_number} {self.current_quantity}/{self.initial_quantity}>"


class StockTransaction(Base):
    """
    Stock Ledger Entry

    Immutable, append-only. quantity is signed: positive for receipts and
    positive adjustments, negative for consumption and losses.
    """
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("stock_lots.id", ondelete="RESTRICT"), index=True)

    type = Column(String(10), nullable=False, doc="IN, OUT_PROD, OUT_LOSS or ADJ")
    quantity = Column(QTY, nullable=False, doc="Signed quantity")

    related_entry_id = Column(String(64), index=True, doc="Originating production/purchase/audit event")
    operator_id = Column(String(64), doc="Operator who posted the movement")
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), index=True)

    material = relationship("Material", back_populates="transactions")
    lot = relationship("StockLot")

    __table_args__ = (
        CheckConstraint("type IN ('IN', 'OUT_PROD', 'OUT_LOSS', 'ADJ')", name='ledger_valid_type'),
        CheckConstraint("quantity <> 0", name='ledger_non_zero'),
    )


class InventoryAlert(Base):
    """Low stock alert surfaced to the notification layer"""
    __tablename__ = "inventory_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)

    alert_type = Column(String(20), nullable=False, default='LOW_STOCK')
    message = Column(Text, nullable=False)
    stock_level = Column(QTY, nullable=False)
    min_stock = Column(QTY, nullable=False)

    is_resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    resolved_at = Column(DateTime(timezone=True))

    material = relationship("Material")

    __table_args__ = (
        Index('idx_inventory_alerts_open', 'material_id', 'alert_type', 'is_resolved'),
    )
