"""Per-product stock counters and low-stock alerting.

Stock rows are the contended resource of the whole service. Reads taken for
validation lock the rows (``FOR UPDATE``) in product-id order, and the
decrement itself is a single conditional UPDATE, so a second writer working
from a stale figure cannot take ``quantity_in_stock`` below zero: it sees no
row affected and fails with ``InsufficientInventory``.
"""
import logging
from typing import Dict, Iterable, List, Tuple
from uuid import UUID

from sqlalchemy import false, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, outbox
from .errors import InsufficientInventory, ProductNotFound

logger = logging.getLogger(__name__)

LOW_STOCK_MESSAGE = "Product inventory below reorder threshold"


class InventoryLedger:
    def __init__(self, db: Session):
        self.db = db

    def stock_levels(self, product_ids: Iterable[UUID], lock: bool = True) -> Dict[UUID, int]:
        """Current stock per product; products without an inventory record report 0."""
        ids = sorted(set(product_ids), key=str)
        stmt = (
            select(models.InventoryRecord.product_id, models.InventoryRecord.quantity_in_stock)
            .where(models.InventoryRecord.product_id.in_(ids))
            .order_by(models.InventoryRecord.product_id)
        )
        if lock:
            stmt = stmt.with_for_update()
        levels = {pid: 0 for pid in ids}
        for row in self.db.execute(stmt):
            levels[row.product_id] = row.quantity_in_stock
        return levels

    def check_available(self, requests: List[Tuple[UUID, int]]) -> Dict[UUID, int]:
        """Validate every (product_id, quantity) before anything is mutated."""
        levels = self.stock_levels(pid for pid, _ in requests)
        for product_id, quantity in requests:
            available = levels[product_id]
            if quantity > available:
                logger.info("[inventory] OUT OF STOCK product_id=%s need=%s have=%s", product_id, quantity, available)
                raise InsufficientInventory(product_id, quantity, available)
        return levels

    def decrement(self, product_id: UUID, quantity: int) -> int:
        rec = models.InventoryRecord
        result = self.db.execute(
            update(rec)
            .where(rec.product_id == product_id, rec.quantity_in_stock >= quantity)
            .values(quantity_in_stock=rec.quantity_in_stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = self.stock_levels([product_id], lock=False)[product_id]
            logger.warning("[inventory] decrement rejected product_id=%s need=%s have=%s",
                           product_id, quantity, available)
            raise InsufficientInventory(product_id, quantity, available)

        level, threshold = self.db.execute(
            select(rec.quantity_in_stock, rec.reorder_threshold).where(rec.product_id == product_id)
        ).one()
        if level <= threshold:
            self.raise_alert(product_id, models.LOW_STOCK, LOW_STOCK_MESSAGE, level=level, threshold=threshold)
        return level

    def increment(self, product_id: UUID, quantity: int) -> int:
        rec = models.InventoryRecord
        result = self.db.execute(
            update(rec)
            .where(rec.product_id == product_id)
            .values(quantity_in_stock=rec.quantity_in_stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ProductNotFound(product_id)
        level = self.db.execute(select(rec.quantity_in_stock).where(rec.product_id == product_id)).scalar_one()
        logger.info("[inventory] restocked product_id=%s qty=%s level=%s", product_id, quantity, level)
        return level

    def open_alert(self, product_id: UUID, alert_type: str = models.LOW_STOCK):
        alert = models.InventoryAlert
        return self.db.execute(
            select(alert).where(
                alert.product_id == product_id,
                alert.alert_type == alert_type,
                alert.is_resolved == false(),
            )
        ).scalars().first()

    def raise_alert(self, product_id: UUID, alert_type: str, message: str, **details):
        """Create an unresolved alert unless one is already open for (product, type)."""
        if self.open_alert(product_id, alert_type) is not None:
            return None
        alert = models.InventoryAlert(product_id=product_id, alert_type=alert_type, message=message, is_resolved=False)
        try:
            with self.db.begin_nested():
                self.db.add(alert)
        except IntegrityError:
            # a concurrent transaction opened the same alert first
            logger.info("[inventory] alert already open product_id=%s type=%s", product_id, alert_type)
            return None
        outbox.record_event(self.db, "inventory.low_stock", {
            "product_id": str(product_id),
            "alert_type": alert_type,
            **details,
        })
        logger.warning("[inventory] %s product_id=%s %s", alert_type, product_id, details)
        return alert

    def resolve_alerts(self, product_id: UUID, alert_type: str = models.LOW_STOCK) -> int:
        alert = models.InventoryAlert
        result = self.db.execute(
            update(alert)
            .where(alert.product_id == product_id, alert.alert_type == alert_type, alert.is_resolved == false())
            .values(is_resolved=True, resolved_at=func.now())
            .execution_options(synchronize_session=False)
        )
        logger.info("[inventory] resolved alerts product_id=%s type=%s count=%s", product_id, alert_type, result.rowcount)
        return result.rowcount

    def get_record(self, product_id: UUID) -> models.InventoryRecord:
        record = self.db.execute(
            select(models.InventoryRecord).where(models.InventoryRecord.product_id == product_id)
        ).scalars().first()
        if record is None:
            raise ProductNotFound(product_id)
        return record
