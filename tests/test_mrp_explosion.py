"""
Tests for the MRP Explosion Engine
Net requirements, actions, lead times and branch resolution
"""

import pytest
from decimal import Decimal
from sqlalchemy.orm import Session

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.exceptions import InvalidQuantity, ProductNotFound
from inventory_mrp.models.production import BOMHeader, BOMItem
from inventory_mrp.schemas.mrp import MRPAction, ItemType, Resolution
from inventory_mrp.services.inventory import StockMovementService
from inventory_mrp.services.mrp import BOMResolver, MRPExplosionEngine
from tests.conftest import InventoryTestHelper


@pytest.fixture
def crate(db_session: Session, org: OrgContext):
    """
    Two-level structure

    CRATE = 1 x BASE (manufactured) + 0.2 kg PIGMENT
    BASE  = 1.5 kg HDPE (5% waste)
    """
    service = StockMovementService(db_session, org)
    hdpe = InventoryTestHelper.create_material(db_session, org, "HDPE", "HDPE", lead_time_days=10)
    pigment = InventoryTestHelper.create_material(db_session, org, "PIG", "Pigment", lead_time_days=3)
    base_stock = InventoryTestHelper.create_material(db_session, org, "BASE", "Crate base", unit="UN")
    InventoryTestHelper.receive(service, hdpe, "20", "HD-1")
    InventoryTestHelper.receive(service, pigment, "100", "PG-1")
    InventoryTestHelper.receive(service, base_stock, "4", "BS-1")

    base = InventoryTestHelper.create_product(db_session, org, "BASE", "Crate base")
    crate = InventoryTestHelper.create_product(db_session, org, "CRATE", "Crate")
    InventoryTestHelper.create_bom(db_session, org, base, [(hdpe, "1.5", "5")])
    InventoryTestHelper.create_bom(db_session, org, crate, [(base_stock, "1", "0"), (pigment, "0.2", "0")])
    return crate


class TestExplosionScenarios:
    """Reference scenarios"""

    def test_product_p_buys_shortfall(self, db_session: Session, org: OrgContext, product_p):
        """2 x M per P, 10 units, M on hand 5 -> required 20, net 15, BUY"""
        product, material = product_p

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("10"))

        assert plan.action == MRPAction.PRODUCE
        assert plan.item_type == ItemType.FINISHED
        assert len(plan.children) == 1
        m = plan.children[0]
        assert m.material_id == material.id
        assert m.required_qty == Decimal("20")
        assert m.current_stock == Decimal("5")
        assert m.net_requirement == Decimal("15")
        assert m.action == MRPAction.BUY
        assert m.item_type == ItemType.COMPONENT
        assert m.level == 2
        assert m.lead_time == 7
        assert plan.lead_time == 8

    def test_net_requirement_against_stock(self, db_session: Session, org: OrgContext):
        """Component needs 100 with 40 on hand -> net 60"""
        resin = InventoryTestHelper.create_material(db_session, org, "RES", "Resin")
        InventoryTestHelper.receive(StockMovementService(db_session, org), resin, "40", "R-1")
        product = InventoryTestHelper.create_product(db_session, org, "TANK", "Tank")
        InventoryTestHelper.create_bom(db_session, org, product, [(resin, "1", "0")])

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("100"))

        assert plan.children[0].net_requirement == Decimal("60")
        assert plan.children[0].action == MRPAction.BUY

    def test_root_ignores_own_stock(self, db_session: Session, org: OrgContext, product_p):
        """Root with 40 of its own stock still produces all 50"""
        product, _ = product_p
        finished = InventoryTestHelper.create_material(db_session, org, "P", "Product P stock", unit="UN")
        InventoryTestHelper.receive(StockMovementService(db_session, org), finished, "40", "P-1")

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("50"))

        assert plan.current_stock == Decimal("40")
        assert plan.required_qty == Decimal("50")
        assert plan.net_requirement == Decimal("50")
        assert plan.action == MRPAction.PRODUCE

    def test_stock_covers_requirement(self, db_session: Session, org: OrgContext, product_p):
        product, _ = product_p

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("2"))

        assert plan.children[0].net_requirement == Decimal("0")
        assert plan.children[0].action == MRPAction.STOCK
        assert plan.children[0].lead_time == 0
        assert plan.lead_time == 1

    def test_zero_quantity_line_is_none(self, db_session: Session, org: OrgContext, product_p):
        product, material = product_p
        optional = InventoryTestHelper.create_material(db_session, org, "STK", "Sticker", unit="UN")
        InventoryTestHelper.create_bom(db_session, org, product, [(material, "2", "0"), (optional, "0", "0")])

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("1"))

        assert plan.children[1].action == MRPAction.NONE
        assert plan.children[1].required_qty == Decimal("0")

    def test_invalid_root_quantity(self, db_session: Session, org: OrgContext, product_p):
        product, _ = product_p

        with pytest.raises(InvalidQuantity):
            MRPExplosionEngine(db_session, org).explode(product, Decimal("0"))


class TestMultiLevelExplosion:
    """Manufactured components recurse on their net requirement"""

    def test_intermediate_nets_and_recurses(self, db_session: Session, org: OrgContext, crate):
        plan = MRPExplosionEngine(db_session, org).explode(crate, Decimal("10"))

        base, pigment = plan.children
        assert base.item_type == ItemType.INTERMEDIATE
        assert base.action == MRPAction.PRODUCE
        assert base.required_qty == Decimal("10")
        assert base.net_requirement == Decimal("6")
        assert base.bom_id is not None

        hdpe = base.children[0]
        # 1.5 x 1.05 x 6
        assert hdpe.required_qty == Decimal("9.45")
        assert hdpe.action == MRPAction.STOCK
        assert hdpe.level == 3

        assert pigment.required_qty == Decimal("2")
        assert pigment.action == MRPAction.STOCK

    def test_manufacturable_check_decides_recursion(self, db_session: Session, org: OrgContext,
                                                    crate, monkeypatch):
        """A component the resolver does not treat as manufactured is bought, not exploded"""
        monkeypatch.setattr(BOMResolver, "is_manufacturable", lambda self, code: code != "BASE")

        plan = MRPExplosionEngine(db_session, org).explode(crate, Decimal("10"))

        base = plan.children[0]
        assert base.item_type == ItemType.COMPONENT
        assert base.action == MRPAction.BUY
        assert base.net_requirement == Decimal("6")
        assert base.product_id is None
        assert base.bom_id is None
        assert base.children == []

    def test_lead_time_rolls_up(self, db_session: Session, org: OrgContext, crate):
        plan = MRPExplosionEngine(db_session, org).explode(crate, Decimal("100"))

        base = plan.children[0]
        hdpe = base.children[0]
        # 1.5 x 1.05 x 96 = 151.2 > 20 on hand
        assert hdpe.action == MRPAction.BUY
        assert hdpe.lead_time == 10
        assert base.lead_time == 11
        assert plan.lead_time == 12

    def test_node_ids_follow_tree(self, db_session: Session, org: OrgContext, crate):
        plan = MRPExplosionEngine(db_session, org).explode(crate, Decimal("10"))

        assert [node.id for node in plan.walk()] == ["1", "1.1", "1.1.1", "1.2"]
        assert plan.children[0].children[0].parent_id == "1.1"

    def test_stock_snapshot_shared_across_branches(self, db_session: Session, org: OrgContext, crate):
        """Pigment used on two levels is netted against the same on-hand value"""
        resolver = BOMResolver(db_session, org)
        hdpe = resolver.find_material_by_code("HDPE")
        pigment = resolver.find_material_by_code("PIG")
        base = resolver.get_product_by_code("BASE")
        InventoryTestHelper.create_bom(db_session, org, base, [(hdpe, "1.5", "5"), (pigment, "10", "0")])

        plan = MRPExplosionEngine(db_session, org).explode(crate, Decimal("10"))

        pigment_nodes = [node for node in plan.walk() if node.product_code == "PIG"]
        assert [node.level for node in pigment_nodes] == [3, 2]
        assert {node.current_stock for node in pigment_nodes} == {Decimal("100")}
        # 10 x 6 at level 3 does not reduce what level 2 sees
        assert pigment_nodes[0].required_qty == Decimal("60")
        assert pigment_nodes[1].action == MRPAction.STOCK

    def test_simulate_by_code(self, db_session: Session, org: OrgContext, crate):
        plan = MRPExplosionEngine(db_session, org).simulate(Decimal("3"), product_code="CRATE")

        assert plan.product_code == "CRATE"
        assert plan.required_qty == Decimal("3")

    def test_simulate_unknown_product(self, db_session: Session, org: OrgContext):
        with pytest.raises(ProductNotFound):
            MRPExplosionEngine(db_session, org).simulate(Decimal("1"), product_code="NOPE")


class TestBranchResolution:
    """Unresolvable branches are reported, not raised"""

    def test_missing_bom_marks_branch(self, db_session: Session, org: OrgContext, product_p):
        product, material = product_p
        InventoryTestHelper.create_product(db_session, org, "SUB", "Sub-assembly")
        sub_stock = InventoryTestHelper.create_material(db_session, org, "SUB", "Sub stock", unit="UN")
        InventoryTestHelper.create_bom(db_session, org, product, [(sub_stock, "1", "0"), (material, "1", "0")])

        plan = MRPExplosionEngine(db_session, org).explode(product, Decimal("3"))

        sub, m = plan.children
        assert sub.action == MRPAction.PRODUCE
        assert sub.resolution == Resolution.BOM_NOT_FOUND
        assert sub.children == []
        assert m.resolution == Resolution.RESOLVED
        assert plan.resolution == Resolution.RESOLVED

    def test_cycle_reported_in_plan(self, db_session: Session, org: OrgContext):
        """Cycles written straight to the tables are cut at the repeated product"""
        a = InventoryTestHelper.create_product(db_session, org, "A", "A")
        b = InventoryTestHelper.create_product(db_session, org, "B", "B")
        a_stock = InventoryTestHelper.create_material(db_session, org, "A", "A stock", unit="UN")
        b_stock = InventoryTestHelper.create_material(db_session, org, "B", "B stock", unit="UN")
        for product, component in ((a, b_stock), (b, a_stock)):
            header = BOMHeader(organization_id=org.organization_id, product_id=product.id,
                               version=1, active=True)
            db_session.add(header)
            db_session.flush()
            db_session.add(BOMItem(organization_id=org.organization_id, bom_id=header.id,
                                   material_id=component.id, sequence=1,
                                   quantity_required=Decimal("1"), waste_percentage=Decimal("0")))
        db_session.commit()

        plan = MRPExplosionEngine(db_session, org).explode(a, Decimal("2"))

        b_node = plan.children[0]
        a_again = b_node.children[0]
        assert b_node.resolution == Resolution.RESOLVED
        assert a_again.resolution == Resolution.CYCLE_DETECTED
        assert a_again.cycle_path == ["A", "B", "A"]
        assert a_again.children == []

    def test_depth_limit(self, db_session: Session, org: OrgContext, crate):
        engine = MRPExplosionEngine(db_session, org)
        engine.max_depth = 2

        plan = engine.explode(crate, Decimal("10"))

        base = plan.children[0]
        assert base.resolution == Resolution.DEPTH_EXCEEDED
        assert base.children == []
