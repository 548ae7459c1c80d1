"""
Production Models
Products, versioned bills of materials, production orders and reservations
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text, Boolean,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from inventory_mrp.core.database import Base

QTY = Numeric(18, 4)


class Product(Base):
    """Manufacturable product. A material sharing its code is its stock."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)

    code = Column(String(40), nullable=False, doc="Product code")
    name = Column(String(120), nullable=False, doc="Product name")
    unit = Column(String(10), nullable=False, default='UN', doc="Unit of measure")
    lead_time_days = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    boms = relationship("BOMHeader", back_populates="product")

    __table_args__ = (
        UniqueConstraint('organization_id', 'code', name='uq_products_org_code'),
    )


class BOMHeader(Base):
    """Bill of materials version. Exactly one version per product is active."""
    __tablename__ = "bom_headers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    version = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=False)
    description = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    product = relationship("Product", back_populates="boms")
    items = relationship("BOMItem", back_populates="bom", order_by="BOMItem.sequence",
                         cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('product_id', 'version', name='uq_bom_headers_product_version'),
        Index('idx_bom_headers_active', 'product_id', 'active'),
    )


class BOMItem(Base):
    """Component line: quantity of a material per one unit of parent output"""
    __tablename__ = "bom_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    bom_id = Column(Integer, ForeignKey("bom_headers.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False)

    sequence = Column(Integer, nullable=False, default=1)
    quantity_required = Column(QTY, nullable=False)
    waste_percentage = Column(Numeric(7, 3), nullable=False, default=0)

    bom = relationship("BOMHeader", back_populates="items")
    material = relationship("Material")

    __table_args__ = (
        CheckConstraint("quantity_required >= 0", name='bom_quantity_non_negative'),
        CheckConstraint("waste_percentage >= 0", name='bom_waste_non_negative'),
    )


class ProductionOrder(Base):
    """Production order (OP), possibly spawned by MRP explosion of a parent order"""
    __tablename__ = "production_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    order_number = Column(String(30), index=True)

    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    bom_id = Column(Integer, ForeignKey("bom_headers.id", ondelete="SET NULL"))
    parent_order_id = Column(Integer, ForeignKey("production_orders.id", ondelete="SET NULL"), index=True)

    target_quantity = Column(QTY, nullable=False)
    produced_quantity = Column(QTY, nullable=False, default=0)
    status = Column(String(16), nullable=False, default='PLANNED')
    priority = Column(String(10), nullable=False, default='NORMAL')
    delivery_date = Column(Date)
    customer_name = Column(String(120))
    notes = Column(Text)

    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    product = relationship("Product")
    parent = relationship("ProductionOrder", remote_side=[id], backref="children")
    reservations = relationship("MaterialReservation", back_populates="order",
                                order_by="MaterialReservation.id")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PLANNED', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')",
            name='order_valid_status'
        ),
        CheckConstraint("priority IN ('LOW', 'NORMAL', 'HIGH', 'URGENT')", name='order_valid_priority'),
        CheckConstraint("target_quantity > 0", name='order_target_positive'),
    )


class MaterialReservation(Base):
    """Planned consumption of a material by a production order"""
    __tablename__ = "material_reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    production_order_id = Column(Integer, ForeignKey("production_orders.id", ondelete="CASCADE"),
                                 nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity = Column(QTY, nullable=False)
    status = Column(String(10), nullable=False, default='PENDING')
    plan_action = Column(String(10), doc="MRP action that produced the reservation (BUY or STOCK)")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    order = relationship("ProductionOrder", back_populates="reservations")
    material = relationship("Material")

    __table_args__ = (
        CheckConstraint("status IN ('PENDING', 'CONSUMED', 'RELEASED')", name='reservation_valid_status'),
    )


class OrderStatusHistory(Base):
    """Audit trail of production order status changes"""
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("production_orders.id", ondelete="CASCADE"), nullable=False, index=True)

    previous_status = Column(String(16), nullable=False)
    new_status = Column(String(16), nullable=False)
    changed_by = Column(String(64))
    changed_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())


class ProductionEntry(Base):
    """
    Posted production entry (backflush)

    Inserted before any component is consumed: the unique key makes a
    concurrent replay of the same entry wait for, then fail against, the
    first one.
    """
    __tablename__ = "production_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    entry_id = Column(String(64), nullable=False, doc="Caller's production entry id")
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    bom_id = Column(Integer, ForeignKey("bom_headers.id", ondelete="SET NULL"))

    quantity_produced = Column(QTY, nullable=False)
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    __table_args__ = (
        UniqueConstraint('organization_id', 'entry_id', name='uq_production_entries_org_entry'),
        CheckConstraint("quantity_produced > 0", name='entry_quantity_positive'),
    )
