"""MRP Simulation API endpoints"""

from fastapi import APIRouter, Depends

from inventory_mrp.api import deps
from inventory_mrp.schemas.mrp import MRPPlanItem, SimulateRequest, BuildableRead
from inventory_mrp.services.mrp import MRPExplosionEngine, BOMResolver

router = APIRouter()


@router.post("/simulate", response_model=MRPPlanItem)
def simulate(
    request: SimulateRequest,
    engine: MRPExplosionEngine = Depends(deps.get_mrp_engine),
):
    """
    Explode a product's bill of materials for a quantity.

    Read-only: nothing is reserved or ordered.
    """
    return engine.simulate(
        request.quantity,
        product_id=request.product_id,
        product_code=request.product_code
    )


@router.get("/products/{product_id}/buildable", response_model=BuildableRead)
def buildable_quantity(
    product_id: int,
    resolver: BOMResolver = Depends(deps.get_bom_resolver),
):
    """Units buildable from current component stock."""
    return resolver.buildable_quantity(product_id)
