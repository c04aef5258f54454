import enum
import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Enum, ForeignKey, Index, Integer, JSON, Numeric, String, TIMESTAMP,
    Text, UniqueConstraint, Uuid, false, func, true,
)
from sqlalchemy.orm import relationship

from .database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def __str__(self):
        return self.value


class ReturnStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


LOW_STOCK = "LOW_STOCK"


class Customer(Base):
    __tablename__ = "customers"
    customer_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False, unique=True)
    phone = Column(String(20))
    loyalty_points = Column(Integer, nullable=False, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    addresses = relationship("Address", back_populates="customer")

    __table_args__ = (CheckConstraint("loyalty_points >= 0", name="chk_loyalty_points"),)


class Address(Base):
    __tablename__ = "addresses"
    address_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id", ondelete="CASCADE"), nullable=False, index=True)
    address_type = Column(String(20), nullable=False)
    street_address = Column(String(100), nullable=False)
    city = Column(String(50), nullable=False)
    state = Column(String(50), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(50), nullable=False, server_default="United States")
    is_default = Column(Boolean, nullable=False, server_default=false())
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    customer = relationship("Customer", back_populates="addresses")

    __table_args__ = (
        CheckConstraint("address_type IN ('BILLING', 'SHIPPING', 'BOTH')", name="chk_address_type"),
    )


class Category(Base):
    __tablename__ = "categories"
    category_id = Column(Integer, primary_key=True, autoincrement=True)
    category_name = Column(String(50), nullable=False, unique=True)
    description = Column(Text)
    parent_category_id = Column(Integer, ForeignKey("categories.category_id", ondelete="SET NULL"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Product(Base):
    __tablename__ = "products"
    product_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_name = Column(String(100), nullable=False, index=True)
    description = Column(Text)
    category_id = Column(Integer, ForeignKey("categories.category_id", ondelete="RESTRICT"), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    sku = Column(String(50), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, server_default=true())
    weight_kg = Column(Numeric(5, 2))
    dimensions_cm = Column(String(50))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    inventory = relationship("InventoryRecord", back_populates="product", uselist=False)

    __table_args__ = (CheckConstraint("base_price > 0", name="chk_base_price"),)


class InventoryRecord(Base):
    __tablename__ = "product_inventory"
    inventory_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False, unique=True)
    quantity_in_stock = Column(Integer, nullable=False, server_default="0")
    reorder_threshold = Column(Integer, nullable=False, server_default="5")
    reorder_quantity = Column(Integer, nullable=False, server_default="10")
    warehouse_location = Column(String(100))
    last_restock_date = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    product = relationship("Product", back_populates="inventory")

    __table_args__ = (
        CheckConstraint("quantity_in_stock >= 0", name="chk_quantity_in_stock"),
        CheckConstraint("reorder_threshold >= 0", name="chk_reorder_threshold"),
        CheckConstraint("reorder_quantity > 0", name="chk_reorder_quantity"),
    )


class InventoryAlert(Base):
    __tablename__ = "inventory_alerts"
    alert_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False)
    alert_type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    is_resolved = Column(Boolean, nullable=False, server_default=false())
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    resolved_at = Column(TIMESTAMP(timezone=True))

    # at most one open alert per (product, type)
    __table_args__ = (
        Index(
            "uq_open_inventory_alert",
            "product_id",
            "alert_type",
            unique=True,
            postgresql_where=(is_resolved == false()),
            sqlite_where=(is_resolved == false()),
        ),
    )


class Order(Base):
    __tablename__ = "orders"
    order_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id", ondelete="RESTRICT"), nullable=False, index=True)
    order_date = Column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)
    status = Column(Enum(OrderStatus, native_enum=False, length=20, name="order_status"), nullable=False, index=True)
    shipping_address_id = Column(Uuid, ForeignKey("addresses.address_id", ondelete="RESTRICT"), nullable=False)
    billing_address_id = Column(Uuid, ForeignKey("addresses.address_id", ondelete="RESTRICT"), nullable=False)
    shipping_method = Column(String(50), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, server_default="0")
    tax_amount = Column(Numeric(10, 2), nullable=False, server_default="0")
    discount_amount = Column(Numeric(10, 2), nullable=False, server_default="0")
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(50), nullable=False)
    notes = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("total_amount >= 0", name="chk_total_amount"),)


class OrderItem(Base):
    __tablename__ = "order_items"
    order_item_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.product_id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())
    order = relationship("Order", back_populates="items")

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="unique_order_product"),
        CheckConstraint("quantity > 0", name="chk_item_quantity"),
        CheckConstraint("unit_price >= 0", name="chk_item_unit_price"),
        CheckConstraint("discount_percent >= 0 AND discount_percent <= 100", name="chk_item_discount"),
    )


class ProductReturn(Base):
    __tablename__ = "product_returns"
    return_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.product_id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id", ondelete="CASCADE"), nullable=False)
    return_quantity = Column(Integer, nullable=False)
    return_reason = Column(Text)
    refund_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(ReturnStatus, native_enum=False, length=20, name="return_status"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    processed_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (CheckConstraint("return_quantity > 0", name="chk_return_quantity"),)


class CustomerNotification(Base):
    __tablename__ = "customer_notifications"
    notification_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id", ondelete="CASCADE"), nullable=False)
    order_id = Column(Uuid, ForeignKey("orders.order_id", ondelete="SET NULL"))
    notification_type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, server_default=false())
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class EventOutbox(Base):
    __tablename__ = "event_outbox"
    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String, nullable=False)
    event_id = Column(Uuid, nullable=False, default=uuid.uuid4)
    occurred_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    version = Column(Integer, nullable=False, server_default="1")
    payload = Column(JSON, nullable=False)
    published_at = Column(TIMESTAMP(timezone=True), nullable=True)
    status = Column(String, nullable=False, server_default="NEW")


class ProcessedEvent(Base):
    __tablename__ = "processed_events"
    service_name = Column(String(100), primary_key=True)
    event_id = Column(String(64), primary_key=True)
    processed_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
