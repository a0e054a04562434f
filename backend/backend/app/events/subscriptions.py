from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasCreatedAt, HasId


def topic_matches(pattern: str, topic: str) -> bool:
    """``orders.executed`` matches itself, ``orders.`` and ``orders.*``."""
    if not pattern:
        return False
    if pattern.endswith(".*"):
        pattern = pattern[:-1]
    if pattern.endswith("."):
        return topic.startswith(pattern)
    return pattern == topic


class WebhookSubscription(Base, HasId, HasCreatedAt):
    __tablename__ = "webhook_subscriptions"

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    topic_pattern: Mapped[str] = mapped_column(String(64), nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    headers: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_success_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def wants(self, topic: str) -> bool:
        return bool(self.is_active) and topic_matches(self.topic_pattern, topic)
