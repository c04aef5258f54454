import json
import logging
import time

import pika
from pika.exceptions import AMQPChannelError, AMQPConnectionError, AMQPError
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from . import config, database, models

logger = logging.getLogger(__name__)


def connect_rabbitmq_with_retry(url: str = None, max_wait_sec: int = 60):
    attempt = 0
    while True:
        try:
            params = pika.URLParameters(url or config.RABBITMQ_URL)
            params.heartbeat = 30
            params.blocked_connection_timeout = 300
            conn = pika.BlockingConnection(params)
            ch = conn.channel()
            ch.exchange_declare(exchange=config.EVENTS_EXCHANGE, exchange_type="direct", durable=True)
            return conn, ch
        except AMQPError as e:
            attempt += 1
            sleep = min(2 ** attempt, max_wait_sec)
            logger.warning("[publisher] RabbitMQ connect failed (%s); retrying in %ss", e, sleep)
            time.sleep(sleep)


def wait_for_db(session_factory=None, max_wait_sec: int = 60):
    attempt = 0
    while True:
        try:
            database.ping(session_factory)
            return
        except OperationalError as e:
            attempt += 1
            sleep = min(2 ** attempt, max_wait_sec)
            logger.warning("[publisher] DB connect failed (%s); retrying in %ss", e, sleep)
            time.sleep(sleep)


def fetch_pending(db, limit: int):
    return db.execute(
        select(models.EventOutbox)
        .where(models.EventOutbox.status == "NEW")
        .order_by(models.EventOutbox.id)
        .limit(limit)
        .with_for_update(skip_locked=True)
    ).scalars().all()


def publish_batch(channel, rows, db) -> int:
    published = 0
    for r in rows:
        try:
            channel.basic_publish(
                exchange=config.EVENTS_EXCHANGE,
                routing_key=r.event_type,
                body=json.dumps(r.payload).encode("utf-8"),
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=2,  # persistent
                    message_id=str(r.event_id),
                ),
            )
            r.status = "PUBLISHED"
            r.published_at = func.now()
            published += 1
        except (AMQPConnectionError, AMQPChannelError) as e:
            # unsent rows stay NEW for the next connection
            logger.error("[publisher] broker connection lost at id=%s: %s", r.id, e)
            raise
        except AMQPError as e:
            logger.error("[publisher] publish failed id=%s: %s", r.id, e)
            r.status = "FAILED"
    db.flush()
    return published


def drain_once(channel, session_factory=None, batch_size: int = None) -> int:
    with database.session_scope(session_factory) as db:
        rows = fetch_pending(db, batch_size or config.OUTBOX_BATCH_SIZE)
        if not rows:
            return 0
        try:
            return publish_batch(channel, rows, db)
        except (AMQPConnectionError, AMQPChannelError):
            # keep the rows that went out before the connection dropped
            db.commit()
            raise


def loop(session_factory=None):
    conn, channel = connect_rabbitmq_with_retry()
    logger.info("[publisher] connected to RabbitMQ")
    wait_for_db(session_factory)
    logger.info("[publisher] connected to DB")

    while True:
        try:
            count = drain_once(channel, session_factory)
            if count:
                logger.info("[publisher] published %s events", count)
        except (AMQPError, OperationalError) as e:
            logger.error("[publisher] loop error: %s", e)
            if conn.is_open:
                try:
                    conn.close()
                except AMQPError as close_err:
                    logger.warning("[publisher] close failed: %s", close_err)
            conn, channel = connect_rabbitmq_with_retry()
        time.sleep(config.OUTBOX_POLL_SEC)


def main():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    loop()


if __name__ == "__main__":
    main()
