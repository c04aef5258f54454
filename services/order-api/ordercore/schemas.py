from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import OrderStatus


class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class OrderCreate(BaseModel):
    customer_id: UUID
    shipping_address_id: UUID
    billing_address_id: UUID
    shipping_method: str = "Standard"
    payment_method: str = Field(min_length=1, max_length=50)
    items: List[OrderItemCreate] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def distinct_products(cls, items):
        seen = set()
        for item in items:
            if item.product_id in seen:
                raise ValueError(f"product {item.product_id} listed more than once")
            seen.add(item.product_id)
        return items


class OrderCreated(BaseModel):
    order_id: UUID
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    loyalty_points: int


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    customer_id: UUID
    status: OrderStatus
    shipping_method: str
    payment_method: str
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    items: List[OrderItemOut]


class StatusUpdate(BaseModel):
    status: OrderStatus
    notify: bool = True


class StatusUpdated(BaseModel):
    order_id: UUID
    previous_status: OrderStatus
    status: OrderStatus


class ReturnCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    restock: bool = True
    refund_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class ReturnProcessed(BaseModel):
    return_id: UUID
    order_id: UUID
    product_id: UUID
    refund_amount: Decimal
    restocked: bool


class ProductCreate(BaseModel):
    product_name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category_name: str = Field(min_length=1, max_length=50)
    base_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    sku: str = Field(min_length=1, max_length=50)
    initial_stock: int = Field(ge=0)
    weight_kg: Optional[Decimal] = None
    dimensions_cm: Optional[str] = None
    reorder_threshold: int = Field(default=5, ge=0)
    reorder_quantity: int = Field(default=10, gt=0)
    warehouse_location: Optional[str] = None


class ProductCreated(BaseModel):
    product_id: UUID
    sku: str
    category_id: int
    quantity_in_stock: int


class InventoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    quantity_in_stock: int
    reorder_threshold: int
    reorder_quantity: int
    warehouse_location: Optional[str] = None
    last_restock_date: Optional[datetime] = None
    low_stock_alert_open: bool = False


class AlertsResolved(BaseModel):
    product_id: UUID
    resolved: int
