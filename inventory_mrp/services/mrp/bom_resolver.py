"""
BOM Resolver
Products, active bill-of-materials versions and kit buildability
"""
from typing import List, Optional, Tuple, Set
from sqlalchemy.orm import Session
from sqlalchemy import func

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.database import unit_of_work
from inventory_mrp.core.exceptions import (
    ProductNotFound, MaterialNotFound, BOMNotFound, CycleDetected, ValidationError
)
from inventory_mrp.models.inventory import Material
from inventory_mrp.models.production import Product, BOMHeader, BOMItem
from inventory_mrp.schemas.mrp import BOMItemInput, BuildableRead
from inventory_mrp.services.business_logic import QuantityCalculationService
import logging

logger = logging.getLogger("inventory_mrp.mrp")


class BOMResolver:
    """
    Bill of materials lookups

    A material is manufacturable when a product with the same code exists
    in the organization.
    """

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx

    def get_product(self, product_id: int) -> Product:
        product = self.db.query(Product).filter(
            Product.organization_id == self.ctx.organization_id,
            Product.id == product_id
        ).first()
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")
        return product

    def find_product_by_code(self, code: str) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.organization_id == self.ctx.organization_id,
            Product.code == code
        ).first()

    def get_product_by_code(self, code: str) -> Product:
        product = self.find_product_by_code(code)
        if product is None:
            raise ProductNotFound(f"Product {code} not found")
        return product

    def find_material_by_code(self, code: str) -> Optional[Material]:
        """Stock record of a product, if it is stocked"""
        return self.db.query(Material).filter(
            Material.organization_id == self.ctx.organization_id,
            Material.code == code
        ).first()

    def get_material(self, material_id: int) -> Material:
        material = self.db.query(Material).filter(
            Material.organization_id == self.ctx.organization_id,
            Material.id == material_id
        ).first()
        if material is None:
            raise MaterialNotFound(f"Material {material_id} not found")
        return material

    def is_manufacturable(self, code: str) -> bool:
        return self.find_product_by_code(code) is not None

    def active_bom(self, product_id: int) -> Tuple[BOMHeader, List[BOMItem]]:
        """
        Active BOM version of a product and its lines in sequence order

        Raises:
            BOMNotFound: the product has no active version
        """
        header = self.db.query(BOMHeader).filter(
            BOMHeader.organization_id == self.ctx.organization_id,
            BOMHeader.product_id == product_id,
            BOMHeader.active.is_(True)
        ).order_by(BOMHeader.version.desc()).first()

        if header is None:
            product = self.db.query(Product).filter(Product.id == product_id).first()
            raise BOMNotFound(product.code if product is not None else str(product_id))

        items = self.db.query(BOMItem).filter(
            BOMItem.bom_id == header.id
        ).order_by(BOMItem.sequence, BOMItem.id).all()

        return header, items

    def create_bom_version(self, product_id: int, items: List[BOMItemInput],
                           description: Optional[str] = None,
                           activate: bool = True) -> BOMHeader:
        """
        Create the next BOM version for a product

        When activated, the previous active version is deactivated in the
        same unit of work so exactly one version stays active.

        Raises:
            CycleDetected: the new lines would make the product contain itself
        """
        with unit_of_work(self.db):
            product = self.get_product(product_id)
            if not items:
                raise ValidationError("A bill of materials needs at least one component")

            # 1. Validate component materials
            materials = [self.get_material(item.material_id) for item in items]

            # 2. Reject cycles through manufacturable components
            if activate:
                path = self._find_cycle(product.code, [m.code for m in materials])
                if path:
                    raise CycleDetected(path)

            # 3. Version bookkeeping
            latest = self.db.query(func.max(BOMHeader.version)).filter(
                BOMHeader.product_id == product.id
            ).scalar() or 0

            if activate:
                self.db.query(BOMHeader).filter(
                    BOMHeader.product_id == product.id,
                    BOMHeader.active.is_(True)
                ).update({BOMHeader.active: False}, synchronize_session="fetch")

            header = BOMHeader(
                organization_id=self.ctx.organization_id,
                product_id=product.id,
                version=latest + 1,
                active=activate,
                description=description
            )
            self.db.add(header)
            self.db.flush()

            # 4. Component lines
            for index, item in enumerate(items, start=1):
                self.db.add(BOMItem(
                    organization_id=self.ctx.organization_id,
                    bom_id=header.id,
                    material_id=item.material_id,
                    sequence=item.sequence if item.sequence is not None else index,
                    quantity_required=item.quantity_required,
                    waste_percentage=item.waste_percentage
                ))
            self.db.flush()

        logger.info(
            f"BOM v{header.version} for {product.code} created with {len(items)} lines "
            f"(active={activate}) by {self.ctx.actor}"
        )
        return header

    def buildable_quantity(self, product_id: int) -> BuildableRead:
        """
        Whole units of a product the current component stock can build

        Only the active BOM's direct components are considered; waste is
        included. The component allowing the fewest units is reported as
        the limiting one.
        """
        product = self.get_product(product_id)
        header, items = self.active_bom(product.id)

        buildable: Optional[int] = None
        limiting: Optional[Material] = None

        for item in items:
            if item.quantity_required <= 0:
                continue
            material = item.material
            units = QuantityCalculationService.buildable_units(
                material.current_stock, item.quantity_required, item.waste_percentage
            )
            if buildable is None or units < buildable:
                buildable = units
                limiting = material

        return BuildableRead(
            product_id=product.id,
            product_code=product.code,
            buildable_quantity=buildable or 0,
            limiting_material_id=limiting.id if limiting is not None else None,
            limiting_material_code=limiting.code if limiting is not None else None
        )

    def _find_cycle(self, root_code: str, component_codes: List[str]) -> Optional[List[str]]:
        """Depth-first search from the new components back to root_code"""
        visited: Set[str] = set()

        def visit(code: str, path: List[str]) -> Optional[List[str]]:
            if code == root_code:
                return path + [code]
            if code in visited:
                return None
            visited.add(code)

            product = self.find_product_by_code(code)
            if product is None:
                return None
            try:
                _, lines = self.active_bom(product.id)
            except BOMNotFound:
                return None

            for line in lines:
                found = visit(line.material.code, path + [code])
                if found:
                    return found
            return None

        for code in component_codes:
            found = visit(code, [root_code])
            if found:
                return found
        return None
