"""
Inventory MRP Business Logic
Quantity arithmetic shared by the ledger, the allocator and the MRP engine
"""
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR
from typing import Optional, Union
import logging

from inventory_mrp.core.config import settings

logger = logging.getLogger("inventory_mrp.mrp")

Number = Union[Decimal, int, float, str]

HUNDRED = Decimal("100")
ZERO = Decimal("0")


def _step(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


class QuantityCalculationService:
    """
    Quantity calculations with fixed decimal precision

    Every quantity that reaches the ledger or a plan goes through to_quantity
    so sums over the ledger are exact.
    """

    @staticmethod
    def to_quantity(value: Optional[Number]) -> Decimal:
        """
        Normalize a quantity to the configured precision

        Args:
            value: Number, numeric string or None (treated as zero)

        Returns:
            Decimal rounded half-up to QUANTITY_DECIMAL_PLACES
        """
        if value is None:
            return ZERO.quantize(_step(settings.QUANTITY_DECIMAL_PLACES))
        if not isinstance(value, Decimal):
            # str() keeps floats like 0.1 from carrying binary noise
            value = Decimal(str(value))
        return value.quantize(_step(settings.QUANTITY_DECIMAL_PLACES), rounding=ROUND_HALF_UP)

    @staticmethod
    def waste_factor(waste_percentage: Optional[Number]) -> Decimal:
        """1 + waste% / 100"""
        waste = Decimal(str(waste_percentage or 0))
        return Decimal("1") + waste / HUNDRED

    @classmethod
    def gross_requirement(cls, quantity_per_unit: Number, waste_percentage: Optional[Number],
                          parent_quantity: Number) -> Decimal:
        """
        Component requirement for a parent quantity

        required = quantity_per_unit × (1 + waste% / 100) × parent_quantity
        """
        per_unit = Decimal(str(quantity_per_unit))
        required = per_unit * cls.waste_factor(waste_percentage) * Decimal(str(parent_quantity))
        return cls.to_quantity(required)

    @classmethod
    def net_requirement(cls, required: Number, on_hand: Number) -> Decimal:
        """max(0, required - on_hand)"""
        net = Decimal(str(required)) - Decimal(str(on_hand))
        return cls.to_quantity(net if net > 0 else ZERO)

    @classmethod
    def buildable_units(cls, on_hand: Number, quantity_per_unit: Number,
                        waste_percentage: Optional[Number] = None) -> int:
        """
        Whole units a single component allows

        Components with a zero per-unit quantity never limit the build.
        """
        per_unit = Decimal(str(quantity_per_unit)) * cls.waste_factor(waste_percentage)
        if per_unit <= 0:
            raise ValueError("quantity_per_unit must be greater than zero")
        stock = Decimal(str(on_hand))
        if stock <= 0:
            return 0
        return int((stock / per_unit).to_integral_value(rounding=ROUND_FLOOR))


__all__ = ["QuantityCalculationService", "ZERO"]
