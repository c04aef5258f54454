import logging
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from . import models, outbox, pricing, schemas
from .database import session_scope
from .errors import InvalidOrderReference, OrderNotFound
from .inventory import InventoryLedger
from .loyalty import LoyaltyAccount, points_for
from .models import OrderStatus
from .status import OrderStatusMachine

logger = logging.getLogger(__name__)


class OrderService:
    """Order placement and lifecycle. Every public call is one transaction."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def create_order(self, order_data: schemas.OrderCreate) -> schemas.OrderCreated:
        """
        In a single transaction:
        - check customer and addresses exist
        - lock and validate stock for every item before any mutation
        - insert orders / order_items, decrement stock, credit loyalty points
        - record order.placed in the outbox
        """
        with session_scope(self.session_factory) as db:
            self._check_references(db, order_data)

            ledger = InventoryLedger(db)
            ledger.check_available([(item.product_id, item.quantity) for item in order_data.items])

            lines = [(item.quantity, item.unit_price) for item in order_data.items]
            subtotal = pricing.subtotal(lines)
            shipping_cost = pricing.shipping_cost(order_data.shipping_method)
            tax_amount = pricing.tax_for(subtotal)
            discount_amount = Decimal("0.00")
            total_amount = pricing.order_total(subtotal, shipping_cost, tax_amount, discount_amount)
            points = points_for(lines)

            order_id = uuid4()
            order = models.Order(
                order_id=order_id,
                customer_id=order_data.customer_id,
                status=OrderStatus.PENDING,
                shipping_address_id=order_data.shipping_address_id,
                billing_address_id=order_data.billing_address_id,
                shipping_method=order_data.shipping_method,
                payment_method=order_data.payment_method,
                shipping_cost=shipping_cost,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                total_amount=total_amount,
                items=[
                    models.OrderItem(product_id=item.product_id, quantity=item.quantity, unit_price=item.unit_price)
                    for item in order_data.items
                ],
            )
            db.add(order)
            db.flush()

            for item in order_data.items:
                ledger.decrement(item.product_id, item.quantity)

            LoyaltyAccount(db).credit(order_data.customer_id, points)

            outbox.record_event(db, "order.placed", {
                "order_id": str(order_id),
                "customer_id": str(order_data.customer_id),
                "items": [
                    {"product_id": str(i.product_id), "quantity": i.quantity, "unit_price": str(i.unit_price)}
                    for i in order_data.items
                ],
                "total_amount": str(total_amount),
            })

            result = schemas.OrderCreated(
                order_id=order_id,
                status=OrderStatus.PENDING,
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                total_amount=total_amount,
                loyalty_points=points,
            )

        logger.info("[orders] created order_id=%s customer_id=%s total=%s",
                    order_id, order_data.customer_id, total_amount)
        return result

    def get_order(self, order_id: UUID) -> schemas.OrderOut:
        with session_scope(self.session_factory) as db:
            order = db.execute(
                select(models.Order).options(selectinload(models.Order.items)).where(models.Order.order_id == order_id)
            ).scalars().first()
            if order is None:
                raise OrderNotFound(order_id)
            return schemas.OrderOut.model_validate(order)

    def update_status(self, order_id: UUID, new_status: OrderStatus, notify: bool = True) -> schemas.StatusUpdated:
        with session_scope(self.session_factory) as db:
            previous = OrderStatusMachine(db).update_status(order_id, new_status, notify=notify)
        return schemas.StatusUpdated(order_id=order_id, previous_status=previous, status=new_status)

    @staticmethod
    def _check_references(db: Session, order_data: schemas.OrderCreate) -> None:
        if db.get(models.Customer, order_data.customer_id) is None:
            raise InvalidOrderReference("customer_id", order_data.customer_id)
        for field in ("shipping_address_id", "billing_address_id"):
            address_id = getattr(order_data, field)
            if db.get(models.Address, address_id) is None:
                raise InvalidOrderReference(field, address_id)
