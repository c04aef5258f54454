"""Domain errors raised by the order core.

Every error is caller-recoverable and carries its structured fields in
``context`` so the HTTP layer can return them unchanged. Raising any of these
inside ``session_scope`` rolls the whole operation back.
"""


class OrderCoreError(Exception):
    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class InsufficientInventory(OrderCoreError):
    def __init__(self, product_id, requested: int, available: int):
        super().__init__(
            f"Insufficient inventory for product ID {product_id}: {requested} requested, {available} available",
            product_id=str(product_id),
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransition(OrderCoreError):
    def __init__(self, from_status, to_status):
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            **{"from": str(from_status), "to": str(to_status)},
        )
        self.from_status = from_status
        self.to_status = to_status


class ExcessiveReturnQuantity(OrderCoreError):
    def __init__(self, requested: int, original: int):
        super().__init__(
            f"Return quantity ({requested}) exceeds original order quantity ({original})",
            requested=requested,
            original=original,
        )
        self.requested = requested
        self.original = original


class OrderNotFound(OrderCoreError):
    def __init__(self, order_id):
        super().__init__(f"Order ID {order_id} not found", order_id=str(order_id))
        self.order_id = order_id


class OrderItemNotFound(OrderCoreError):
    def __init__(self, order_id, product_id):
        super().__init__(
            f"Order item not found for order ID {order_id} and product ID {product_id}",
            order_id=str(order_id),
            product_id=str(product_id),
        )
        self.order_id = order_id
        self.product_id = product_id


class InvalidOrderReference(OrderCoreError):
    """Customer or address referenced by an order request does not exist."""

    def __init__(self, field: str, value):
        super().__init__(f"Unknown {field}: {value}", field=field, value=str(value))
        self.field = field
        self.value = value


class ProductNotFound(OrderCoreError):
    def __init__(self, product_id):
        super().__init__(f"Product ID {product_id} not found", product_id=str(product_id))
        self.product_id = product_id


class DuplicateSku(OrderCoreError):
    def __init__(self, sku: str):
        super().__init__(f"Product with SKU {sku} already exists", sku=sku)
        self.sku = sku


class InvalidReturnRequest(OrderCoreError):
    def __init__(self, field: str, value):
        super().__init__(f"Invalid {field} for return: {value}", field=field, value=str(value))
        self.field = field
        self.value = value
