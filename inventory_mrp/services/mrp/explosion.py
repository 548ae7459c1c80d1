"""
MRP Explosion Engine
Recursive bill-of-materials explosion against current stock
"""
from typing import Dict, List, Optional
from decimal import Decimal
from sqlalchemy.orm import Session

from inventory_mrp.core.config import settings
from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.exceptions import BOMNotFound, InvalidQuantity, ValidationError
from inventory_mrp.models.inventory import Material
from inventory_mrp.models.production import Product
from inventory_mrp.schemas.mrp import MRPPlanItem, MRPAction, ItemType, Resolution
from inventory_mrp.services.business_logic import QuantityCalculationService, ZERO
from .bom_resolver import BOMResolver
import logging

logger = logging.getLogger("inventory_mrp.mrp")

to_quantity = QuantityCalculationService.to_quantity


class MRPExplosionEngine:
    """
    Multi-level MRP

    Read-only. Stock levels are read once per explode() call, so the same
    material shows the same on-hand quantity in every branch of one plan.
    Branch problems (no active BOM, cycles, depth limit) are reported on
    the plan node; database errors abort the whole explosion.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx
        self.resolver = BOMResolver(db, ctx)
        self.production_buffer_days = settings.MRP_PRODUCTION_BUFFER_DAYS
        self.max_depth = settings.MRP_MAX_DEPTH
        self._stock: Dict[int, Decimal] = {}

    def simulate(self, quantity: Decimal, product_id: Optional[int] = None,
                 product_code: Optional[str] = None) -> MRPPlanItem:
        """Explode a product referenced by id or code"""
        if product_id is not None:
            product = self.resolver.get_product(product_id)
        elif product_code:
            product = self.resolver.get_product_by_code(product_code)
        else:
            raise ValidationError("product_id or product_code is required")
        return self.explode(product, quantity)

    def explode(self, product: Product, required_qty: Decimal, level: int = 1,
                parent_id: Optional[str] = None) -> MRPPlanItem:
        """
        Build the plan tree for required_qty units of a product

        At level 1 the product is the order itself: its whole quantity is
        produced regardless of stock. Deeper levels net against stock.
        """
        required = to_quantity(required_qty)
        if required <= 0:
            raise InvalidQuantity(required_qty)

        self._stock = {}
        material = self.resolver.find_material_by_code(product.code)
        node_id = f"{parent_id}.1" if parent_id else "1"

        plan = self._node(
            node_id=node_id,
            parent_id=parent_id,
            level=level,
            code=product.code,
            name=product.name,
            unit=product.unit,
            material=material,
            product=product,
            required=required,
            path=[]
        )

        logger.info(
            f"MRP explosion {product.code} x {required}: "
            f"{sum(1 for _ in plan.walk())} nodes, lead time {plan.lead_time} days"
        )
        return plan

    def _node(self, node_id: str, parent_id: Optional[str], level: int, code: str,
              name: str, unit: str, material: Optional[Material], product: Optional[Product],
              required: Decimal, path: List[str]) -> MRPPlanItem:
        stock = self._stock_of(material)

        if level == 1:
            net = required
            action = MRPAction.PRODUCE
            item_type = ItemType.FINISHED
        else:
            net = QuantityCalculationService.net_requirement(required, stock)
            item_type = ItemType.INTERMEDIATE if product is not None else ItemType.COMPONENT
            if required == 0:
                action = MRPAction.NONE
            elif net == 0:
                action = MRPAction.STOCK
            elif product is not None:
                action = MRPAction.PRODUCE
            else:
                action = MRPAction.BUY

        item = MRPPlanItem(
            id=node_id,
            parent_id=parent_id,
            product_code=code,
            name=name,
            unit=unit,
            item_type=item_type,
            level=level,
            material_id=material.id if material is not None else None,
            product_id=product.id if product is not None else None,
            required_qty=required,
            current_stock=stock,
            net_requirement=net,
            action=action
        )

        if action == MRPAction.PRODUCE and net > 0:
            self._expand(item, product, path)

        item.lead_time = self._lead_time(item, material)
        return item

    def _expand(self, item: MRPPlanItem, product: Product, path: List[str]) -> None:
        if product.code in path:
            item.resolution = Resolution.CYCLE_DETECTED
            item.cycle_path = path[path.index(product.code):] + [product.code]
            logger.warning(f"BOM cycle detected: {' -> '.join(item.cycle_path)}")
            return

        if item.level >= self.max_depth:
            item.resolution = Resolution.DEPTH_EXCEEDED
            logger.warning(f"MRP depth limit {self.max_depth} reached at {product.code}")
            return

        try:
            header, lines = self.resolver.active_bom(product.id)
        except BOMNotFound:
            item.resolution = Resolution.BOM_NOT_FOUND
            logger.warning(f"No active BOM for {product.code}, branch left unresolved")
            return

        item.bom_id = header.id
        child_path = path + [product.code]

        for sequence, line in enumerate(lines, start=1):
            material = line.material
            manufactured = self.resolver.is_manufacturable(material.code)
            child_required = QuantityCalculationService.gross_requirement(
                line.quantity_required, line.waste_percentage, item.net_requirement
            )
            item.children.append(self._node(
                node_id=f"{item.id}.{sequence}",
                parent_id=item.id,
                level=item.level + 1,
                code=material.code,
                name=material.name,
                unit=material.unit,
                material=material,
                product=self.resolver.get_product_by_code(material.code) if manufactured else None,
                required=child_required,
                path=child_path
            ))

    def _lead_time(self, item: MRPPlanItem, material: Optional[Material]) -> int:
        if item.action == MRPAction.BUY:
            return int(material.lead_time_days or 0) if material is not None else 0
        if item.action == MRPAction.PRODUCE:
            return max((child.lead_time for child in item.children), default=0) + self.production_buffer_days
        return 0

    def _stock_of(self, material: Optional[Material]) -> Decimal:
        if material is None:
            return to_quantity(ZERO)
        if material.id not in self._stock:
            current = self.db.query(Material.current_stock).filter(
                Material.id == material.id
            ).scalar()
            self._stock[material.id] = to_quantity(current)
        return self._stock[material.id]
