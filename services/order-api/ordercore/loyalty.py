import logging
import math
from decimal import Decimal
from typing import Iterable, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import models
from .errors import InvalidOrderReference
from .pricing import line_amount

logger = logging.getLogger(__name__)

POINTS_PER_AMOUNT = Decimal("10")


def points_for(lines: Iterable[Tuple[int, Decimal]]) -> int:
    """One point per 10 currency units, floored per line rather than on the order total."""
    return sum(math.floor(line_amount(q, p) / POINTS_PER_AMOUNT) for q, p in lines)


class LoyaltyAccount:
    def __init__(self, db: Session):
        self.db = db

    def credit(self, customer_id: UUID, points: int) -> None:
        if points <= 0:
            return
        result = self.db.execute(
            update(models.Customer)
            .where(models.Customer.customer_id == customer_id)
            .values(loyalty_points=models.Customer.loyalty_points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidOrderReference("customer_id", customer_id)
        logger.info("[loyalty] credited customer_id=%s points=%s", customer_id, points)

    def balance(self, customer_id: UUID) -> int:
        customer = self.db.get(models.Customer, customer_id)
        if customer is None:
            raise InvalidOrderReference("customer_id", customer_id)
        return customer.loyalty_points
