"""
Inventory Alerts Service
Reorder-point checks run after every stock movement
"""
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from inventory_mrp.core.context import OrgContext
from inventory_mrp.core.database import unit_of_work
from inventory_mrp.core.exceptions import AlertNotFound
from inventory_mrp.models.inventory import Material, InventoryAlert
from inventory_mrp.schemas.inventory import AlertType
import logging

logger = logging.getLogger("inventory_mrp.inventory")


class AlertService:
    """Low stock alerting, at most one open alert per material and type"""

    def __init__(self, db: Session, ctx: OrgContext):
        self.db = db
        self.ctx = ctx

    def check_reorder(self, material: Material) -> Optional[InventoryAlert]:
        """
        Raise or resolve the LOW_STOCK alert for a material

        Called with the material row locked, so the open-alert lookup and
        the insert cannot race another movement on the same material.

        Returns:
            The newly raised alert, or None
        """
        open_alert = self._open_alert(material.id, AlertType.LOW_STOCK)

        if material.current_stock <= material.min_stock:
            if open_alert is not None:
                open_alert.stock_level = material.current_stock
                return None

            alert = InventoryAlert(
                organization_id=self.ctx.organization_id,
                material_id=material.id,
                alert_type=AlertType.LOW_STOCK.value,
                message=(
                    f"Low stock for {material.name}: {material.current_stock} {material.unit} "
                    f"(minimum {material.min_stock})"
                ),
                stock_level=material.current_stock,
                min_stock=material.min_stock,
                is_resolved=False
            )
            self.db.add(alert)
            self.db.flush()
            logger.warning(alert.message)
            return alert

        if open_alert is not None:
            open_alert.is_resolved = True
            open_alert.resolved_at = datetime.now(timezone.utc)
            logger.info(f"Low stock alert {open_alert.id} for {material.code} resolved by restock")

        return None

    def list_alerts(self, include_resolved: bool = False,
                    material_id: Optional[int] = None) -> List[InventoryAlert]:
        query = self.db.query(InventoryAlert).filter(
            InventoryAlert.organization_id == self.ctx.organization_id
        )
        if not include_resolved:
            query = query.filter(InventoryAlert.is_resolved.is_(False))
        if material_id is not None:
            query = query.filter(InventoryAlert.material_id == material_id)
        return query.order_by(InventoryAlert.created_at.desc(), InventoryAlert.id.desc()).all()

    def resolve(self, alert_id: int) -> InventoryAlert:
        """Manually acknowledge an alert"""
        with unit_of_work(self.db):
            alert = self.db.query(InventoryAlert).filter(
                InventoryAlert.organization_id == self.ctx.organization_id,
                InventoryAlert.id == alert_id
            ).first()
            if alert is None:
                raise AlertNotFound(f"Alert {alert_id} not found")

            if not alert.is_resolved:
                alert.is_resolved = True
                alert.resolved_at = datetime.now(timezone.utc)

        logger.info(f"Alert {alert_id} resolved by {self.ctx.actor}")
        return alert

    def _open_alert(self, material_id: int, alert_type: AlertType) -> Optional[InventoryAlert]:
        return self.db.query(InventoryAlert).filter(
            InventoryAlert.organization_id == self.ctx.organization_id,
            InventoryAlert.material_id == material_id,
            InventoryAlert.alert_type == alert_type.value,
            InventoryAlert.is_resolved.is_(False)
        ).first()
