import json
import logging
import time
from uuid import UUID

import pika
from pika.exceptions import AMQPError
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from . import config, database, models

logger = logging.getLogger(__name__)

SERVICE_NAME = "notification-service"
QUEUE_NAME = "q.notification.notification-created"
ROUTING_KEY = "notification.created"
FALLBACK_EMAIL = "unknown@example.com"

SUBJECTS = {
    "ORDER_STATUS": "Order Update",
    "RETURN_PROCESSED": "Return Processed",
}


def already_processed(db, key: str) -> bool:
    row = db.execute(
        select(models.ProcessedEvent.event_id).where(
            models.ProcessedEvent.service_name == SERVICE_NAME,
            models.ProcessedEvent.event_id == key,
        )
    ).first()
    return row is not None


def mark_processed(db, key: str):
    insert = postgresql.insert if db.get_bind().dialect.name == "postgresql" else sqlite.insert
    db.execute(
        insert(models.ProcessedEvent)
        .values(service_name=SERVICE_NAME, event_id=key)
        .on_conflict_do_nothing()
    )


def send_email(to: str, subject: str, body: str):
    logger.info("[notification] Email TO=%s SUBJECT=%s BODY=%s", to, subject, body)


def handle_event(payload: dict, session_factory=None) -> bool:
    """Deliver one notification.created event; False when it was already delivered."""
    key = payload["notification_id"]
    with database.session_scope(session_factory) as db:
        if already_processed(db, key):
            logger.info("[notification] skip already processed notification_id=%s", key)
            return False

        email = db.execute(
            select(models.Customer.email).where(models.Customer.customer_id == UUID(payload["customer_id"]))
        ).scalar()
        send_email(
            email or FALLBACK_EMAIL,
            SUBJECTS.get(payload.get("notification_type"), "Notification"),
            payload["message"],
        )
        mark_processed(db, key)
    return True


def connect_rabbit_with_retry(max_wait: int = 60):
    attempt = 0
    while True:
        try:
            params = pika.URLParameters(config.RABBITMQ_URL)
            params.heartbeat = 30
            conn = pika.BlockingConnection(params)
            ch = conn.channel()
            ch.exchange_declare(exchange=config.EVENTS_EXCHANGE, exchange_type="direct", durable=True)
            return conn, ch
        except AMQPError as e:
            attempt += 1
            sleep = min(2 ** attempt, max_wait)
            logger.warning("[notification] rabbit connect failed: %s; retrying in %ss", e, sleep)
            time.sleep(sleep)


def on_message(ch, method, props, body, session_factory=None):
    try:
        handle_event(json.loads(body.decode()), session_factory)
    except (ValueError, KeyError) as e:
        # malformed payloads are dropped, not redelivered forever
        logger.error("[notification] bad message: %s", e)
        ch.basic_reject(delivery_tag=method.delivery_tag, requeue=False)
        return
    except SQLAlchemyError as e:
        logger.error("[notification] storage error, requeueing: %s", e)
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
        return
    ch.basic_ack(delivery_tag=method.delivery_tag)


def consume_forever():
    while True:
        try:
            conn, ch = connect_rabbit_with_retry()
            ch.queue_declare(queue=QUEUE_NAME, durable=True)
            ch.queue_bind(queue=QUEUE_NAME, exchange=config.EVENTS_EXCHANGE, routing_key=ROUTING_KEY)
            ch.basic_qos(prefetch_count=10)
            ch.basic_consume(queue=QUEUE_NAME, on_message_callback=on_message)
            logger.info("[notification] listening on %s ...", ROUTING_KEY)
            ch.start_consuming()
        except (AMQPError, SQLAlchemyError) as e:
            logger.error("[notification] consuming error: %s; reconnecting...", e)
            time.sleep(2)


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    database.ping()
    logger.info("[notification] DB ready")
    consume_forever()


if __name__ == "__main__":
    main()
