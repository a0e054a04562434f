from __future__ import annotations

from app.core.context import get_request_id
from app.db.session import UnitOfWork
from app.events.outbox import OutboxEvent


def publish(uow: UnitOfWork, topic: str, payload: dict, *, entity_id: str | None = None) -> OutboxEvent:
    """Queue an event in the caller's transaction.

    It is delivered only if the change it announces commits.
    """
    db = UnitOfWork.require(uow)
    evt = OutboxEvent(
        topic=topic,
        entity_id=entity_id,
        request_id=get_request_id(),
        payload=payload or {},
    )
    db.add(evt)
    db.flush()
    return evt
