"""
Shared pytest fixtures.

Every test gets its own file-backed SQLite database so that threaded tests
see real, separate connections and transactions.
"""
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from ordercore import catalog, models, schemas
from ordercore.database import Base, make_engine, make_session_factory, session_scope
from ordercore.main import app, get_session_factory
from ordercore.orders import OrderService
from ordercore.returns import ReturnService


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ordercore-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def order_service(session_factory):
    return OrderService(session_factory)


@pytest.fixture
def return_service(session_factory):
    return ReturnService(session_factory)


@pytest.fixture
def customer(session_factory):
    """A customer with one address used for both shipping and billing."""
    customer_id, address_id = uuid4(), uuid4()
    with session_scope(session_factory) as db:
        db.add(models.Customer(
            customer_id=customer_id,
            first_name="Ada",
            last_name="Shopper",
            email=f"ada-{customer_id.hex[:8]}@example.com",
            loyalty_points=0,
        ))
        db.flush()
        db.add(models.Address(
            address_id=address_id,
            customer_id=customer_id,
            address_type="BOTH",
            street_address="1 Market St",
            city="Springfield",
            state="IL",
            postal_code="62701",
            country="United States",
        ))
    return {"customer_id": customer_id, "address_id": address_id}


@pytest.fixture
def make_product(session_factory):
    def _make(stock: int, price: str = "10.00", reorder_threshold: int = 5):
        created = catalog.add_product(
            schemas.ProductCreate(
                product_name=f"Product {uuid4().hex[:6]}",
                category_name="Electronics",
                base_price=Decimal(price),
                sku=f"SKU-{uuid4().hex[:10]}",
                initial_stock=stock,
                reorder_threshold=reorder_threshold,
            ),
            session_factory,
        )
        return created.product_id

    return _make


@pytest.fixture
def order_request(customer):
    def _build(*items, shipping_method="Standard"):
        return schemas.OrderCreate(
            customer_id=customer["customer_id"],
            shipping_address_id=customer["address_id"],
            billing_address_id=customer["address_id"],
            shipping_method=shipping_method,
            payment_method="Credit Card",
            items=[
                {"product_id": product_id, "quantity": quantity, "unit_price": Decimal(price)}
                for product_id, quantity, price in items
            ],
        )

    return _build


@pytest.fixture
def stock_of(session_factory):
    def _stock(product_id):
        with session_scope(session_factory) as db:
            return db.query(models.InventoryRecord.quantity_in_stock).filter_by(product_id=product_id).scalar()

    return _stock


@pytest.fixture
def count_rows(session_factory):
    def _count(model, **filters):
        with session_scope(session_factory) as db:
            return db.query(model).filter_by(**filters).count()

    return _count


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
