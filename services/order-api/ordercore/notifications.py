import logging
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from . import models, outbox

logger = logging.getLogger(__name__)

ORDER_STATUS = "ORDER_STATUS"
RETURN_PROCESSED = "RETURN_PROCESSED"


class NotificationSink:
    """Appends customer-facing notifications and announces them on the outbox."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, customer_id: UUID, notification_type: str, message: str, order_id: UUID = None) -> UUID:
        notification_id = uuid4()
        self.db.add(models.CustomerNotification(
            notification_id=notification_id,
            customer_id=customer_id,
            order_id=order_id,
            notification_type=notification_type,
            message=message,
        ))
        outbox.record_event(self.db, "notification.created", {
            "notification_id": str(notification_id),
            "customer_id": str(customer_id),
            "order_id": str(order_id) if order_id else None,
            "notification_type": notification_type,
            "message": message,
        })
        logger.info("[notification] queued type=%s customer_id=%s order_id=%s",
                    notification_type, customer_id, order_id)
        return notification_id
