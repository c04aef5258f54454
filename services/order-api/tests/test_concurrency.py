import threading

from ordercore import models
from ordercore.errors import InsufficientInventory, InvalidTransition
from ordercore.models import OrderStatus


def run_concurrently(count, target):
    barrier = threading.Barrier(count)
    outcomes = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            result = target()
        except Exception as exc:  # collected and asserted on by the caller
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def test_concurrent_orders_never_oversell(order_service, order_request, make_product, stock_of, count_rows):
    product = make_product(stock=5, reorder_threshold=0)

    outcomes = run_concurrently(8, lambda: order_service.create_order(order_request((product, 2, "10"))))

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(outcomes) == 8
    assert all(isinstance(f, InsufficientInventory) for f in failures)
    assert len(outcomes) - len(failures) == 2
    assert stock_of(product) == 1
    assert count_rows(models.Order) == 2


def test_orders_for_different_products_all_commit(order_service, order_request, make_product, stock_of):
    products = [make_product(stock=3) for _ in range(4)]
    it = iter(products)
    pick = threading.Lock()

    def place():
        with pick:
            product = next(it)
        return order_service.create_order(order_request((product, 3, "10")))

    outcomes = run_concurrently(4, place)

    assert not [o for o in outcomes if isinstance(o, Exception)]
    assert [stock_of(p) for p in products] == [0, 0, 0, 0]


def test_concurrent_status_updates_apply_once(order_service, order_request, make_product, count_rows):
    product = make_product(stock=10)
    order_id = order_service.create_order(order_request((product, 1, "10"))).order_id

    outcomes = run_concurrently(5, lambda: order_service.update_status(order_id, OrderStatus.PROCESSING))

    successes = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(successes) == 1
    assert all(isinstance(o, InvalidTransition) for o in outcomes if isinstance(o, Exception))
    assert count_rows(models.CustomerNotification, order_id=order_id) == 1
