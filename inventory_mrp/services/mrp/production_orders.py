"""
Production Orders Service
Turns MRP plans into production orders and drives their lifecycle
"""
from typing import Dict, List, Optional, Set
from decimal import Decimal
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.database import unit_of_work
from inventory_mrp.core.exceptions import (
    OrderNotFound, InvalidStatusTransition, InvalidQuantity, DuplicateEntry,
    BOMNotFound, ValidationError
)
from inventory_mrp.models.production import (
    Product, BOMHeader, ProductionOrder, MaterialReservation, OrderStatusHistory, ProductionEntry
)
from inventory_mrp.schemas.inventory import MovementInput, MovementType
from inventory_mrp.schemas.mrp import (
    MRPPlanItem, MRPAction, Resolution, OrderStatus, ReservationStatus,
    ProductionOrderCreate, ProductionEntryResult, ComponentConsumption
)
from inventory_mrp.services.business_logic import QuantityCalculationService
from inventory_mrp.services.inventory.stock_movements import StockMovementService
from .bom_resolver import BOMResolver
from .explosion import MRPExplosionEngine
import logging

logger = logging.getLogger("inventory_mrp.mrp")

to_quantity = QuantityCalculationService.to_quantity

# Allowed order status transitions
STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PLANNED: {OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
    OrderStatus.IN_PROGRESS: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class ProductionOrderService:
    """
    Production order processing

    Order creation consumes an MRP plan: manufactured components become
    child orders, bought or stocked components become reservations.
    Reservations are consumed through the stock movement service when the
    order starts.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx
        self.resolver = BOMResolver(db, ctx)
        self.engine = MRPExplosionEngine(db, ctx)
        self.movements = StockMovementService(db, ctx)

    def create_production_order(self, order_data: ProductionOrderCreate) -> ProductionOrder:
        """
        Create an order tree from an MRP plan in one unit of work

        Args:
            order_data: Order header; carries a simulated plan or none

        Returns:
            The root production order
        """
        product = self.resolver.get_product(order_data.product_id)

        plan = order_data.plan
        if plan is None:
            plan = self.engine.explode(product, order_data.target_quantity)
        elif plan.product_code != product.code or plan.level != 1:
            raise ValidationError(f"Plan does not describe product {product.code}")
        elif to_quantity(plan.required_qty) != to_quantity(order_data.target_quantity):
            raise ValidationError(
                f"Plan is for {plan.required_qty} units of {product.code}, "
                f"order target is {order_data.target_quantity}"
            )

        if plan.resolution == Resolution.BOM_NOT_FOUND:
            raise BOMNotFound(product.code)

        with unit_of_work(self.db):
            order = self._create_from_plan(
                plan, product, to_quantity(order_data.target_quantity), None, order_data
            )

        logger.info(
            f"Production order {order.order_number} created for {product.code} "
            f"x {order.target_quantity} by {self.ctx.actor}"
        )
        return order

    def change_status(self, order_id: int, new_status: OrderStatus,
                      produced_quantity: Optional[Decimal] = None) -> ProductionOrder:
        """
        Move an order to a new status with its stock side effects

        IN_PROGRESS consumes the pending reservations, COMPLETED receives
        the output when the product is stocked, CANCELLED releases pending
        reservations. The transition and its side effects commit together.
        """
        target = OrderStatus(new_status)

        with unit_of_work(self.db):
            order = self._get_order(order_id, for_update=True)
            current = OrderStatus(order.status)

            if target not in STATUS_TRANSITIONS[current]:
                raise InvalidStatusTransition(current.value, target.value)

            if target == OrderStatus.IN_PROGRESS:
                self._consume_reservations(order)
            elif target == OrderStatus.COMPLETED:
                self._complete(order, produced_quantity)
            elif target == OrderStatus.CANCELLED:
                self._release_reservations(order)

            order.status = target.value
            self.db.add(OrderStatusHistory(
                organization_id=self.ctx.organization_id,
                order_id=order.id,
                previous_status=current.value,
                new_status=target.value,
                changed_by=self.ctx.actor
            ))
            self.db.flush()

        logger.info(f"Order {order.order_number}: {current.value} -> {target.value} by {self.ctx.actor}")
        return order

    def record_production(self, product_id: int, quantity_produced: Decimal,
                          production_entry_id: str) -> ProductionEntryResult:
        """
        Backflush component consumption for a production entry

        Every active BOM component is consumed as OUT_PROD, waste included,
        in one unit of work. An entry id that was already posted is rejected.
        """
        quantity = to_quantity(quantity_produced)
        if quantity <= 0:
            raise InvalidQuantity(quantity_produced)

        consumed: List[ComponentConsumption] = []

        with unit_of_work(self.db):
            product = self.resolver.get_product(product_id)
            header, lines = self.resolver.active_bom(product.id)

            # Claim the entry id first; a concurrent replay blocks here
            self._claim_entry(production_entry_id, product, header, quantity)

            if self.movements.ledger.entries_for(production_entry_id):
                raise DuplicateEntry(f"Production entry {production_entry_id} has already been posted")

            for line in lines:
                required = QuantityCalculationService.gross_requirement(
                    line.quantity_required, line.waste_percentage, quantity
                )
                if required <= 0:
                    continue
                result = self.movements.apply(MovementInput(
                    material_id=line.material_id,
                    type=MovementType.OUT_PROD,
                    quantity=required,
                    related_entry_id=production_entry_id,
                    notes=f"Backflush {product.code} x {quantity} (BOM v{header.version})"
                ))
                consumed.append(ComponentConsumption(
                    material_id=line.material_id,
                    quantity=required,
                    current_stock=result.current_stock
                ))

        logger.info(
            f"Production entry {production_entry_id}: {product.code} x {quantity}, "
            f"{len(consumed)} components consumed"
        )
        return ProductionEntryResult(
            production_entry_id=production_entry_id,
            product_id=product_id,
            quantity_produced=quantity,
            consumed=consumed
        )

    def get_order(self, order_id: int) -> ProductionOrder:
        return self._get_order(order_id)

    def list_children(self, order_id: int) -> List[ProductionOrder]:
        self._get_order(order_id)
        return self.db.query(ProductionOrder).filter(
            ProductionOrder.organization_id == self.ctx.organization_id,
            ProductionOrder.parent_order_id == order_id
        ).order_by(ProductionOrder.id).all()

    def list_reservations(self, order_id: int) -> List[MaterialReservation]:
        self._get_order(order_id)
        return self.db.query(MaterialReservation).filter(
            MaterialReservation.organization_id == self.ctx.organization_id,
            MaterialReservation.production_order_id == order_id
        ).order_by(MaterialReservation.id).all()

    def status_history(self, order_id: int) -> List[OrderStatusHistory]:
        self._get_order(order_id)
        return self.db.query(OrderStatusHistory).filter(
            OrderStatusHistory.organization_id == self.ctx.organization_id,
            OrderStatusHistory.order_id == order_id
        ).order_by(OrderStatusHistory.id).all()

    def _get_order(self, order_id: int, for_update: bool = False) -> ProductionOrder:
        query = self.db.query(ProductionOrder).filter(
            ProductionOrder.organization_id == self.ctx.organization_id,
            ProductionOrder.id == order_id
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        order = query.first()
        if order is None:
            raise OrderNotFound(f"Production order {order_id} not found")
        return order

    def _create_from_plan(self, node: MRPPlanItem, product: Product, target: Decimal,
                          parent: Optional[ProductionOrder],
                          order_data: ProductionOrderCreate) -> ProductionOrder:
        order = ProductionOrder(
            organization_id=self.ctx.organization_id,
            product_id=product.id,
            bom_id=self._plan_bom_id(node, product),
            parent_order_id=parent.id if parent is not None else None,
            target_quantity=target,
            produced_quantity=to_quantity(0),
            status=OrderStatus.PLANNED.value,
            priority=order_data.priority.value,
            delivery_date=order_data.delivery_date,
            customer_name=order_data.customer_name if parent is None else None,
            notes=order_data.notes if parent is None else f"Generated by MRP for {parent.order_number}",
            created_by=self.ctx.actor
        )
        self.db.add(order)
        self.db.flush()
        order.order_number = self._order_number(order)

        if node.resolution != Resolution.RESOLVED:
            logger.warning(
                f"Order {order.order_number} for {product.code} created from an unresolved "
                f"plan node ({node.resolution.value})"
            )

        # Plan ids come from the caller; resolve them again inside the organization
        for child in node.children:
            if child.action == MRPAction.PRODUCE and child.net_requirement > 0:
                child_product = self.resolver.get_product(child.product_id)
                if child_product.code != child.product_code:
                    raise ValidationError(
                        f"Plan node {child.id} names {child.product_code}, "
                        f"product {child.product_id} is {child_product.code}"
                    )
                self._create_from_plan(child, child_product, child.net_requirement, order, order_data)
            elif child.action in (MRPAction.BUY, MRPAction.STOCK) and child.material_id is not None:
                material = self.resolver.get_material(child.material_id)
                if material.code != child.product_code:
                    raise ValidationError(
                        f"Plan node {child.id} names {child.product_code}, "
                        f"material {child.material_id} is {material.code}"
                    )
                self.db.add(MaterialReservation(
                    organization_id=self.ctx.organization_id,
                    production_order_id=order.id,
                    material_id=material.id,
                    quantity=child.required_qty,
                    status=ReservationStatus.PENDING.value,
                    plan_action=child.action.value
                ))

        self.db.flush()
        return order

    def _claim_entry(self, production_entry_id: str, product: Product,
                     header: BOMHeader, quantity: Decimal) -> ProductionEntry:
        entry = ProductionEntry(
            organization_id=self.ctx.organization_id,
            entry_id=production_entry_id,
            product_id=product.id,
            bom_id=header.id,
            quantity_produced=quantity,
            created_by=self.ctx.actor
        )
        self.db.add(entry)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateEntry(
                f"Production entry {production_entry_id} has already been posted"
            ) from e
        return entry

    def _plan_bom_id(self, node: MRPPlanItem, product: Product) -> Optional[int]:
        """BOM id carried by a plan node, checked against the product"""
        if node.bom_id is None:
            return None
        exists = self.db.query(BOMHeader.id).filter(
            BOMHeader.organization_id == self.ctx.organization_id,
            BOMHeader.product_id == product.id,
            BOMHeader.id == node.bom_id
        ).first()
        if exists is None:
            raise ValidationError(f"BOM {node.bom_id} does not belong to product {product.code}")
        return node.bom_id

    def _order_number(self, order: ProductionOrder) -> str:
        return f"OP-{datetime.now().year}-{order.id:06d}"

    def _pending_reservations(self, order: ProductionOrder) -> List[MaterialReservation]:
        return self.db.query(MaterialReservation).filter(
            MaterialReservation.organization_id == self.ctx.organization_id,
            MaterialReservation.production_order_id == order.id,
            MaterialReservation.status == ReservationStatus.PENDING.value
        ).order_by(MaterialReservation.id).all()

    def _consume_reservations(self, order: ProductionOrder) -> None:
        for reservation in self._pending_reservations(order):
            self.movements.apply(MovementInput(
                material_id=reservation.material_id,
                type=MovementType.OUT_PROD,
                quantity=reservation.quantity,
                related_entry_id=order.order_number,
                notes=f"Consumption for production order {order.order_number}"
            ))
            reservation.status = ReservationStatus.CONSUMED.value
        self.db.flush()

    def _release_reservations(self, order: ProductionOrder) -> None:
        for reservation in self._pending_reservations(order):
            reservation.status = ReservationStatus.RELEASED.value
        self.db.flush()

    def _complete(self, order: ProductionOrder, produced_quantity: Optional[Decimal]) -> None:
        produced = to_quantity(produced_quantity if produced_quantity is not None else order.target_quantity)
        order.produced_quantity = produced

        product = self.resolver.get_product(order.product_id)
        material = self.resolver.find_material_by_code(product.code)
        if material is None or produced <= 0:
            return

        self.movements.apply(MovementInput(
            material_id=material.id,
            type=MovementType.IN,
            quantity=produced,
            lot_number=order.order_number,
            related_entry_id=order.order_number,
            notes=f"Output of production order {order.order_number}"
        ))
