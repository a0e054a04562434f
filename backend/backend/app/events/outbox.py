from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasCreatedAt, HasId, utcnow


class OutboxEvent(Base, HasId, HasCreatedAt):
    """A stock or production event waiting for webhook delivery.

    Written in the same transaction as the change it announces. ``entity_id``
    is the order, trigger or production entry the event is about.
    """

    __tablename__ = "outbox_events"

    topic: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    next_attempt_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def delivered(self) -> bool:
        return self.delivered_at is not None


Index("ix_outbox_events_pending", OutboxEvent.delivered_at, OutboxEvent.next_attempt_at)
