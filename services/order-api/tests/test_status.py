from itertools import product as pairs
from uuid import uuid4

import pytest

from ordercore import models
from ordercore.database import session_scope
from ordercore.errors import InvalidTransition, OrderNotFound
from ordercore.models import OrderStatus
from ordercore.status import TRANSITIONS, can_transition, status_message

LEGAL = {
    (OrderStatus.PENDING, OrderStatus.PROCESSING),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
}

# shortest path from PENDING to each state
PATHS = {
    OrderStatus.PENDING: [],
    OrderStatus.PROCESSING: [OrderStatus.PROCESSING],
    OrderStatus.SHIPPED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED],
    OrderStatus.DELIVERED: [OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED],
    OrderStatus.CANCELLED: [OrderStatus.CANCELLED],
}


@pytest.fixture
def placed_order(order_service, order_request, make_product):
    product = make_product(stock=10)
    return order_service.create_order(order_request((product, 1, "25"))).order_id


def move_to(order_service, order_id, status):
    for step in PATHS[status]:
        order_service.update_status(order_id, step, notify=False)


def status_of(session_factory, order_id):
    with session_scope(session_factory) as db:
        return db.get(models.Order, order_id).status


def test_transition_table_matches_lifecycle():
    for current, new in pairs(OrderStatus, OrderStatus):
        assert can_transition(current, new) == ((current, new) in LEGAL)
    assert TRANSITIONS[OrderStatus.DELIVERED] == set()
    assert TRANSITIONS[OrderStatus.CANCELLED] == set()


@pytest.mark.parametrize("current,new", sorted(pairs(OrderStatus, OrderStatus)))
def test_update_status_succeeds_only_for_legal_pairs(order_service, placed_order, session_factory, current, new):
    move_to(order_service, placed_order, current)

    if (current, new) in LEGAL:
        result = order_service.update_status(placed_order, new)
        assert result.previous_status == current
        assert status_of(session_factory, placed_order) == new
    else:
        with pytest.raises(InvalidTransition) as exc:
            order_service.update_status(placed_order, new)
        assert exc.value.from_status == current
        assert exc.value.to_status == new
        assert status_of(session_factory, placed_order) == current


def test_processing_to_delivered_is_rejected(order_service, placed_order, session_factory, count_rows):
    order_service.update_status(placed_order, OrderStatus.PROCESSING, notify=False)

    with pytest.raises(InvalidTransition) as exc:
        order_service.update_status(placed_order, OrderStatus.DELIVERED)

    assert exc.value.context == {"from": "PROCESSING", "to": "DELIVERED"}
    assert status_of(session_factory, placed_order) == OrderStatus.PROCESSING
    assert count_rows(models.CustomerNotification, order_id=placed_order) == 0


def test_status_change_notifies_customer(order_service, placed_order, session_factory, customer, count_rows):
    order_service.update_status(placed_order, OrderStatus.PROCESSING)

    with session_scope(session_factory) as db:
        note = db.query(models.CustomerNotification).filter_by(order_id=placed_order).one()
        assert note.customer_id == customer["customer_id"]
        assert note.notification_type == "ORDER_STATUS"
        assert note.message == "Your order has been confirmed and is now being processed."
    assert count_rows(models.EventOutbox, event_type="notification.created") == 1
    assert count_rows(models.EventOutbox, event_type="order.status_changed") == 1


def test_status_change_without_notification(order_service, placed_order, count_rows):
    order_service.update_status(placed_order, OrderStatus.CANCELLED, notify=False)
    assert count_rows(models.CustomerNotification, order_id=placed_order) == 0


def test_unknown_order(order_service):
    with pytest.raises(OrderNotFound):
        order_service.update_status(uuid4(), OrderStatus.PROCESSING)


def test_unrecognised_status_value_is_an_invalid_transition(order_service, placed_order):
    with pytest.raises(InvalidTransition):
        order_service.update_status(placed_order, "RETURNED")


def test_status_messages():
    assert status_message(OrderStatus.SHIPPED).startswith("Great news!")
    assert status_message(OrderStatus.DELIVERED) == "Your order has been delivered. Thank you for shopping with us!"
    assert status_message("ON_HOLD") == "Your order status has been updated to ON_HOLD"
