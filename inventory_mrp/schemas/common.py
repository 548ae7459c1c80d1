"""
Inventory MRP Common Schemas
Shared Pydantic models for common API structures
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class ErrorResponse(BaseModel):
    """
    Standard error response model

    Used for all API error responses
    """
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "error": "insufficient_stock",
                "message": "Insufficient stock for Resin A. Current: 40.0000, requested: 50",
                "detail": None,
                "material_name": "Resin A",
                "current_stock": "40.0000",
                "requested": "50",
            }
        },
    )


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    database: str = Field(..., description="Database connectivity status")
    debug: bool = Field(False, description="Debug mode flag")
