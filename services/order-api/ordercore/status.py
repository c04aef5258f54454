import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import models, outbox
from .errors import InvalidTransition, OrderNotFound
from .models import OrderStatus
from .notifications import ORDER_STATUS, NotificationSink

logger = logging.getLogger(__name__)

# DELIVERED and CANCELLED are terminal
TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

STATUS_MESSAGES = {
    OrderStatus.PROCESSING: "Your order has been confirmed and is now being processed.",
    OrderStatus.SHIPPED: "Great news! Your order has been shipped and is on its way to you.",
    OrderStatus.DELIVERED: "Your order has been delivered. Thank you for shopping with us!",
    OrderStatus.CANCELLED: "Your order has been cancelled. Please contact customer support for more information.",
}


def can_transition(current, new) -> bool:
    return new in TRANSITIONS.get(current, set())


def status_message(status) -> str:
    return STATUS_MESSAGES.get(status, f"Your order status has been updated to {status}")


class OrderStatusMachine:
    def __init__(self, db: Session):
        self.db = db

    def _current(self, order_id: UUID, lock: bool = True):
        stmt = select(models.Order.status, models.Order.customer_id).where(models.Order.order_id == order_id)
        if lock:
            stmt = stmt.with_for_update()
        row = self.db.execute(stmt).first()
        if row is None:
            raise OrderNotFound(order_id)
        return row

    def update_status(self, order_id: UUID, new_status: OrderStatus, notify: bool = True) -> OrderStatus:
        """Move an order to ``new_status``; returns the status it left."""
        current, customer_id = self._current(order_id)
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise InvalidTransition(current, new_status) from None
        while True:
            if not can_transition(current, new_status):
                raise InvalidTransition(current, new_status)
            # compare-and-swap on the status we validated against
            result = self.db.execute(
                update(models.Order)
                .where(models.Order.order_id == order_id, models.Order.status == current)
                .values(status=new_status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                break
            # a concurrent writer moved the order; the graph is acyclic so this terminates
            latest, customer_id = self._current(order_id, lock=False)
            logger.warning("[status] lost update order_id=%s expected=%s found=%s", order_id, current, latest)
            current = latest

        if notify:
            NotificationSink(self.db).notify(customer_id, ORDER_STATUS, status_message(new_status), order_id=order_id)
        outbox.record_event(self.db, "order.status_changed", {
            "order_id": str(order_id),
            "from": current.value,
            "to": new_status.value,
        })
        logger.info("[status] order_id=%s %s -> %s", order_id, current, new_status)
        return current
