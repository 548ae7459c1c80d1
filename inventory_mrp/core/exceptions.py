"""
Custom Application Exceptions
"""
from decimal import Decimal
from typing import List, Optional


class InventoryMRPException(Exception):
    """Base exception for the inventory ledger and MRP engine"""
    status_code = 400
    code = "inventory_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "detail": self.detail}


class ValidationError(InventoryMRPException):
    """Raised when movement or order data validation fails"""
    status_code = 422
    code = "validation_error"


class InvalidQuantity(ValidationError):
    """Raised when a quantity is zero or negative"""
    code = "invalid_quantity"

    def __init__(self, quantity):
        super().__init__(f"Quantity must be greater than zero (got {quantity})")
        self.quantity = quantity


class MissingLotNumber(ValidationError):
    """Raised when an IN movement has no lot number"""
    code = "missing_lot_number"

    def __init__(self):
        super().__init__("Lot number is required for IN movements")


class NotFoundError(InventoryMRPException):
    """Raised when a referenced record does not exist in the organization"""
    status_code = 404
    code = "not_found"


class MaterialNotFound(NotFoundError):
    code = "material_not_found"


class ProductNotFound(NotFoundError):
    code = "product_not_found"


class LotNotFound(NotFoundError):
    code = "lot_not_found"


class OrderNotFound(NotFoundError):
    code = "order_not_found"


class AlertNotFound(NotFoundError):
    code = "alert_not_found"


class BOMNotFound(NotFoundError):
    """Raised when a product has no active bill of materials"""
    code = "bom_not_found"

    def __init__(self, product_code: str):
        super().__init__(f"No active bill of materials for product {product_code}")
        self.product_code = product_code


class BusinessLogicError(InventoryMRPException):
    """Raised when business rules are violated"""
    status_code = 409
    code = "business_rule_violation"


class InsufficientStock(BusinessLogicError):
    """Raised when an outbound movement exceeds the available balance"""
    code = "insufficient_stock"

    def __init__(self, material_name: str, current_stock: Decimal, requested: Decimal,
                 message: Optional[str] = None):
        super().__init__(
            message or f"Insufficient stock for {material_name}. Current: {current_stock}, requested: {requested}"
        )
        self.material_name = material_name
        self.current_stock = current_stock
        self.requested = requested

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "material_name": self.material_name,
            "current_stock": str(self.current_stock),
            "requested": str(self.requested),
        })
        return data


class AllocationFailed(InsufficientStock):
    """Raised when the lots cannot cover a request the cached balance allowed"""
    code = "allocation_failed"

    def __init__(self, material_name: str, current_stock: Decimal, requested: Decimal, shortfall: Decimal):
        super().__init__(
            material_name, current_stock, requested,
            message=f"Could not allocate lots for {material_name}: short {shortfall} of {requested}",
        )
        self.shortfall = shortfall

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortfall"] = str(self.shortfall)
        return data


class DuplicateLot(BusinessLogicError):
    code = "duplicate_lot"


class DuplicateEntry(BusinessLogicError):
    """Raised when a related entry has already been posted to the ledger"""
    code = "duplicate_entry"


class InvalidStatusTransition(BusinessLogicError):
    code = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid status transition from {current} to {target}")
        self.current = current
        self.target = target


class CycleDetected(ValidationError):
    """Raised when a bill of materials would make a product contain itself"""
    code = "cycle_detected"

    def __init__(self, path: List[str]):
        super().__init__(f"Bill of materials cycle detected: {' -> '.join(path)}")
        self.path = path

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["path"] = self.path
        return data
