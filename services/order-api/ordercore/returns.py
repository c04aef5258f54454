import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select

from . import models, outbox, pricing, schemas
from .database import session_scope
from .errors import ExcessiveReturnQuantity, InvalidReturnRequest, OrderItemNotFound
from .inventory import InventoryLedger
from .models import ReturnStatus
from .notifications import RETURN_PROCESSED, NotificationSink

logger = logging.getLogger(__name__)


def refund_message(refund_amount: Decimal) -> str:
    return (f"Your return has been processed. Refund amount: ${refund_amount}. "
            "Thank you for letting us know about your experience.")


class ReturnService:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def process_return(
        self,
        order_id: UUID,
        product_id: UUID,
        return_quantity: int,
        reason: Optional[str] = None,
        restock: bool = True,
        refund_amount: Optional[Decimal] = None,
    ) -> schemas.ReturnProcessed:
        if return_quantity <= 0:
            raise InvalidReturnRequest("return_quantity", return_quantity)
        if refund_amount is not None and refund_amount < 0:
            raise InvalidReturnRequest("refund_amount", refund_amount)

        with session_scope(self.session_factory) as db:
            row = db.execute(
                select(models.OrderItem.quantity, models.OrderItem.unit_price, models.Order.customer_id)
                .join(models.Order, models.Order.order_id == models.OrderItem.order_id)
                .where(models.OrderItem.order_id == order_id, models.OrderItem.product_id == product_id)
            ).first()
            if row is None:
                raise OrderItemNotFound(order_id, product_id)
            original_quantity, unit_price, customer_id = row

            if return_quantity > original_quantity:
                raise ExcessiveReturnQuantity(return_quantity, original_quantity)

            if refund_amount is None:
                refund = pricing.money(return_quantity * unit_price)
            else:
                refund = pricing.money(refund_amount)

            return_id = uuid4()
            db.add(models.ProductReturn(
                return_id=return_id,
                order_id=order_id,
                product_id=product_id,
                customer_id=customer_id,
                return_quantity=return_quantity,
                return_reason=reason,
                refund_amount=refund,
                status=ReturnStatus.PROCESSED,
            ))

            if restock:
                InventoryLedger(db).increment(product_id, return_quantity)

            NotificationSink(db).notify(customer_id, RETURN_PROCESSED, refund_message(refund), order_id=order_id)
            outbox.record_event(db, "return.processed", {
                "return_id": str(return_id),
                "order_id": str(order_id),
                "product_id": str(product_id),
                "return_quantity": return_quantity,
                "refund_amount": str(refund),
                "restocked": restock,
            })

        logger.info("[returns] processed return_id=%s order_id=%s refund=%s restock=%s",
                    return_id, order_id, refund, restock)
        return schemas.ReturnProcessed(
            return_id=return_id,
            order_id=order_id,
            product_id=product_id,
            refund_amount=refund,
            restocked=restock,
        )
