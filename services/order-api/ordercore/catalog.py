import logging

from sqlalchemy import func, select

from . import models, schemas
from .database import session_scope
from .errors import DuplicateSku

logger = logging.getLogger(__name__)


def add_product(product_data: schemas.ProductCreate, session_factory=None) -> schemas.ProductCreated:
    """Register a product together with its inventory record.

    The category is looked up by name and created on the fly when missing.
    """
    with session_scope(session_factory) as db:
        if db.execute(select(models.Product.product_id).where(models.Product.sku == product_data.sku)).first():
            raise DuplicateSku(product_data.sku)

        category = db.execute(
            select(models.Category).where(models.Category.category_name == product_data.category_name)
        ).scalars().first()
        if category is None:
            category = models.Category(category_name=product_data.category_name, description="Auto-created category")
            db.add(category)
            db.flush()
            logger.info("[catalog] created category name=%s", product_data.category_name)

        product = models.Product(
            product_name=product_data.product_name,
            description=product_data.description,
            category_id=category.category_id,
            base_price=product_data.base_price,
            sku=product_data.sku,
            weight_kg=product_data.weight_kg,
            dimensions_cm=product_data.dimensions_cm,
        )
        product.inventory = models.InventoryRecord(
            quantity_in_stock=product_data.initial_stock,
            reorder_threshold=product_data.reorder_threshold,
            reorder_quantity=product_data.reorder_quantity,
            warehouse_location=product_data.warehouse_location,
            last_restock_date=func.now(),
        )
        db.add(product)
        db.flush()

        result = schemas.ProductCreated(
            product_id=product.product_id,
            sku=product.sku,
            category_id=category.category_id,
            quantity_in_stock=product_data.initial_stock,
        )

    logger.info("[catalog] added product sku=%s initial_stock=%s", product_data.sku, product_data.initial_stock)
    return result
