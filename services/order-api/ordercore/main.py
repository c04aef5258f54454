import logging
from uuid import UUID

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from . import catalog, config, database, errors, schemas
from .inventory import InventoryLedger
from .orders import OrderService
from .returns import ReturnService

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Order API")

ERROR_STATUS = {
    errors.InsufficientInventory: status.HTTP_409_CONFLICT,
    errors.InvalidTransition: status.HTTP_409_CONFLICT,
    errors.ExcessiveReturnQuantity: status.HTTP_409_CONFLICT,
    errors.DuplicateSku: status.HTTP_409_CONFLICT,
    errors.OrderNotFound: status.HTTP_404_NOT_FOUND,
    errors.OrderItemNotFound: status.HTTP_404_NOT_FOUND,
    errors.ProductNotFound: status.HTTP_404_NOT_FOUND,
    errors.InvalidOrderReference: status.HTTP_422_UNPROCESSABLE_ENTITY,
    errors.InvalidReturnRequest: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_session_factory():
    return database.SessionLocal


@app.exception_handler(errors.OrderCoreError)
async def order_core_error_handler(request: Request, exc: errors.OrderCoreError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info("[order-api] %s %s -> %s %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "message": exc.message, "context": exc.context},
    )


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("[order-api] storage error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "StorageUnavailable", "message": "storage layer unavailable", "retryable": True},
    )


@app.get("/health")
def health(session_factory=Depends(get_session_factory)):
    database.ping(session_factory)
    return {"status": "ok"}


@app.post("/orders", status_code=status.HTTP_201_CREATED, response_model=schemas.OrderCreated)
def create_order(order: schemas.OrderCreate, session_factory=Depends(get_session_factory)):
    return OrderService(session_factory).create_order(order)


@app.get("/orders/{order_id}", response_model=schemas.OrderOut)
def get_order(order_id: UUID, session_factory=Depends(get_session_factory)):
    return OrderService(session_factory).get_order(order_id)


@app.patch("/orders/{order_id}/status", response_model=schemas.StatusUpdated)
def update_order_status(order_id: UUID, body: schemas.StatusUpdate, session_factory=Depends(get_session_factory)):
    return OrderService(session_factory).update_status(order_id, body.status, notify=body.notify)


@app.post("/orders/{order_id}/returns", status_code=status.HTTP_201_CREATED, response_model=schemas.ReturnProcessed)
def process_return(order_id: UUID, body: schemas.ReturnCreate, session_factory=Depends(get_session_factory)):
    return ReturnService(session_factory).process_return(
        order_id,
        body.product_id,
        body.quantity,
        reason=body.reason,
        restock=body.restock,
        refund_amount=body.refund_amount,
    )


@app.post("/products", status_code=status.HTTP_201_CREATED, response_model=schemas.ProductCreated)
def add_product(product: schemas.ProductCreate, session_factory=Depends(get_session_factory)):
    return catalog.add_product(product, session_factory)


@app.get("/inventory/{product_id}", response_model=schemas.InventoryOut)
def get_inventory(product_id: UUID, session_factory=Depends(get_session_factory)):
    with database.session_scope(session_factory) as db:
        ledger = InventoryLedger(db)
        out = schemas.InventoryOut.model_validate(ledger.get_record(product_id))
        out.low_stock_alert_open = ledger.open_alert(product_id) is not None
        return out


@app.post("/inventory/{product_id}/alerts/resolve", response_model=schemas.AlertsResolved)
def resolve_inventory_alerts(product_id: UUID, session_factory=Depends(get_session_factory)):
    with database.session_scope(session_factory) as db:
        resolved = InventoryLedger(db).resolve_alerts(product_id)
    return schemas.AlertsResolved(product_id=product_id, resolved=resolved)
