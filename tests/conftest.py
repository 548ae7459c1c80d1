"""
Test Configuration and Fixtures
Shared testing infrastructure for the inventory ledger and MRP engine
"""

import os

# Settings are read at import time: point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inventory_mrp.main import app
from inventory_mrp.api.deps import get_db
from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.database import Base, SessionLocal, engine, init_db
from inventory_mrp.models.inventory import Material, StockTransaction
from inventory_mrp.models.production import Product
from inventory_mrp.schemas.inventory import MovementInput, MovementType, AdjustmentDirection
from inventory_mrp.schemas.mrp import BOMItemInput
from inventory_mrp.services.inventory import StockMovementService
from inventory_mrp.services.mrp import BOMResolver

ORG_ID = "org-plasticos"
OTHER_ORG_ID = "org-other"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test"""
    # Create all tables
    init_db(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def org() -> OrgContext:
    return OrgContext(organization_id=ORG_ID, operator_id="operator-1")


@pytest.fixture
def other_org() -> OrgContext:
    return OrgContext(organization_id=OTHER_ORG_ID, operator_id="operator-9")


@pytest.fixture
def org_headers() -> dict:
    return {"X-Organization-Id": ORG_ID, "X-Operator-Id": "operator-1"}


@pytest.fixture
def movements(db_session: Session, org: OrgContext) -> StockMovementService:
    return StockMovementService(db_session, org)


@pytest.fixture
def resin(db_session: Session, org: OrgContext) -> Material:
    """Resin A: two lots, L1 30 (expires first) and L2 50"""
    material = InventoryTestHelper.create_material(db_session, org, "RES-A", "Resin A")
    service = StockMovementService(db_session, org)
    InventoryTestHelper.receive(service, material, "30", "L1", expiration_date=date(2026, 3, 1))
    InventoryTestHelper.receive(service, material, "50", "L2", expiration_date=date(2026, 6, 1))
    return material


@pytest.fixture
def product_p(db_session: Session, org: OrgContext) -> Tuple[Product, Material]:
    """Product P built from 2 x material M; M has 5 on hand"""
    m = InventoryTestHelper.create_material(db_session, org, "M", "Material M", lead_time_days=7)
    InventoryTestHelper.receive(StockMovementService(db_session, org), m, "5", "M-1")
    p = InventoryTestHelper.create_product(db_session, org, "P", "Product P")
    InventoryTestHelper.create_bom(db_session, org, p, [(m, "2", "0")])
    return p, m


# Database test helpers
class InventoryTestHelper:
    """Helper class for building inventory and BOM data in tests"""

    @staticmethod
    def create_material(db_session: Session, ctx: OrgContext, code: str, name: str,
                        min_stock: str = "0", lead_time_days: int = 0,
                        unit: str = "KG") -> Material:
        material = Material(
            organization_id=ctx.organization_id,
            code=code,
            name=name,
            unit=unit,
            min_stock=Decimal(min_stock),
            current_stock=Decimal("0"),
            lead_time_days=lead_time_days
        )
        db_session.add(material)
        db_session.commit()
        return material

    @staticmethod
    def create_product(db_session: Session, ctx: OrgContext, code: str, name: str,
                       unit: str = "UN") -> Product:
        product = Product(organization_id=ctx.organization_id, code=code, name=name, unit=unit)
        db_session.add(product)
        db_session.commit()
        return product

    @staticmethod
    def create_bom(db_session: Session, ctx: OrgContext, product: Product,
                   lines: List[Tuple[Material, str, str]], activate: bool = True):
        """lines: (material, quantity per unit, waste percentage)"""
        items = [
            BOMItemInput(
                material_id=material.id,
                quantity_required=Decimal(quantity),
                waste_percentage=Decimal(waste)
            )
            for material, quantity, waste in lines
        ]
        return BOMResolver(db_session, ctx).create_bom_version(product.id, items, activate=activate)

    @staticmethod
    def receive(service: StockMovementService, material: Material, quantity: str,
                lot_number: str, expiration_date: Optional[date] = None):
        return service.process_movement(MovementInput(
            material_id=material.id,
            type=MovementType.IN,
            quantity=Decimal(quantity),
            lot_number=lot_number,
            expiration_date=expiration_date
        ))

    @staticmethod
    def issue(service: StockMovementService, material: Material, quantity: str,
              movement_type: MovementType = MovementType.OUT_PROD,
              related_entry_id: Optional[str] = None):
        direction = AdjustmentDirection.DECREASE if movement_type == MovementType.ADJ else None
        return service.process_movement(MovementInput(
            material_id=material.id,
            type=movement_type,
            quantity=Decimal(quantity),
            direction=direction,
            related_entry_id=related_entry_id
        ))

    @staticmethod
    def ledger_sum(db_session: Session, material_id: int) -> Decimal:
        rows = db_session.query(StockTransaction.quantity).filter(
            StockTransaction.material_id == material_id
        ).all()
        return sum((Decimal(str(row.quantity)) for row in rows), Decimal("0"))


# API test helpers
class APITestHelper:
    """Helper class for API testing"""

    @staticmethod
    def assert_error_response(response, expected_status: int, expected_error: str = None):
        """Assert error response format"""
        assert response.status_code == expected_status
        data = response.json()
        assert "error" in data
        assert "message" in data
        if expected_error:
            assert data["error"] == expected_error

    @staticmethod
    def assert_success_response(response, expected_keys: list = None):
        """Assert successful response format"""
        assert response.status_code in [200, 201]
        data = response.json()
        if expected_keys:
            for key in expected_keys:
                assert key in data
