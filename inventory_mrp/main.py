"""
Inventory MRP FastAPI Main Application
Entry point for the inventory ledger and MRP REST API
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from inventory_mrp.core.config import settings
from inventory_mrp.core.database import check_db_connection, init_db
from inventory_mrp.core.exceptions import InventoryMRPException
from inventory_mrp.core.logging import setup_logging, get_logger
from inventory_mrp.schemas.common import HealthCheckResponse
from inventory_mrp.api.v1.api_router import api_router

setup_logging()

logger = get_logger("api")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Inventory Ledger & Multi-Level MRP API

    Stock ledger and material requirements planning for a plastics shop.

    ### Key Features:
    - **Stock Ledger**: append-only movements with derived on-hand balances
    - **Lots**: FEFO/FIFO consumption with row locking
    - **MRP**: recursive BOM explosion into produce / buy / stock decisions
    - **Production Orders**: child orders and material reservations from a plan
    - **Alerts**: reorder-point notifications after every movement

    Every request is scoped by the `X-Organization-Id` header.
    """,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    openapi_url=settings.OPENAPI_URL,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not settings.DEBUG:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )


@app.get("/health", tags=["System"], response_model=HealthCheckResponse)
async def health_check():
    """Liveness probe; reports degraded when the database is unreachable"""
    try:
        connected = check_db_connection()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

    return HealthCheckResponse(
        status="healthy" if connected else "degraded",
        version=settings.APP_VERSION,
        database="connected" if connected else "disconnected",
        debug=settings.DEBUG
    )


@app.get("/info", tags=["System"])
async def system_info():
    """Build information and the MRP planning parameters in effect"""
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": "v1",
        "docs_url": settings.DOCS_URL,
        "features": [
            "Append-only stock ledger",
            "FEFO/FIFO lot allocation",
            "Multi-level MRP explosion",
            "Production orders and reservations",
            "Reorder-point alerts"
        ],
        "mrp": {
            "production_buffer_days": settings.MRP_PRODUCTION_BUFFER_DAYS,
            "max_depth": settings.MRP_MAX_DEPTH
        }
    }


@app.on_event("startup")
async def startup_event():
    """Refuse to start without a database; create missing tables"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if not check_db_connection():
        logger.error("Database unreachable at startup")
        raise RuntimeError("Database connection failed")

    init_db()
    logger.info("Startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"{settings.APP_NAME} stopped")


@app.exception_handler(InventoryMRPException)
async def domain_exception_handler(request: Request, exc: InventoryMRPException):
    """
    Map domain errors to their HTTP status and a JSON body

    Args:
        request: Incoming request
        exc: Domain exception raised by a service

    Returns:
        JSON body with error, message and detail
    """
    level = logger.warning if exc.status_code >= 409 else logger.info
    level(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything that is not a domain error becomes a logged 500"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory_mrp.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
