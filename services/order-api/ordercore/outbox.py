from sqlalchemy.orm import Session

from . import models


def record_event(db: Session, event_type: str, payload: dict) -> models.EventOutbox:
    """Queue an event in the caller's transaction; the publisher ships it after commit."""
    row = models.EventOutbox(event_type=event_type, payload=payload)
    db.add(row)
    return row
