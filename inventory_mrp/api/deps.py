"""
API Dependencies
Common dependencies for API endpoints
"""

from typing import Generator, Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from inventory_mrp.core.database import SessionLocal
from inventory_mrp.core.context import OrgContext
from inventory_mrp.services.inventory import StockMovementService, AlertService, LedgerStore
from inventory_mrp.services.mrp import BOMResolver, MRPExplosionEngine, ProductionOrderService


def get_db() -> Generator:
    """
    Database dependency - creates a new database session for each request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_org_context(
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-Id"),
    x_operator_id: Optional[str] = Header(None, alias="X-Operator-Id"),
) -> OrgContext:
    """
    Organization scope of the request.

    Every query is filtered by this organization; the operator id is
    stamped on ledger rows and status history.
    """
    if not x_organization_id or not x_organization_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-Id header is required"
        )
    return OrgContext(
        organization_id=x_organization_id.strip(),
        operator_id=x_operator_id.strip() if x_operator_id else None
    )


def get_movement_service(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> StockMovementService:
    return StockMovementService(db, ctx)


def get_ledger(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> LedgerStore:
    return LedgerStore(db, ctx)


def get_alert_service(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> AlertService:
    return AlertService(db, ctx)


def get_bom_resolver(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> BOMResolver:
    return BOMResolver(db, ctx)


def get_mrp_engine(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> MRPExplosionEngine:
    return MRPExplosionEngine(db, ctx)


def get_production_service(
    db: Session = Depends(get_db),
    ctx: OrgContext = Depends(get_org_context),
) -> ProductionOrderService:
    return ProductionOrderService(db, ctx)
