"""
Webhook delivery for outbox events.

Each pass takes the due, undelivered events oldest first and POSTs each one
to every active subscription whose pattern matches its topic. An event is
done once all of them answered 2xx; otherwise it is retried after
2**attempts seconds, capped at ten minutes. Delivery is at-least-once: a
retry goes to every matching subscription again.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import httpx
from sqlalchemy.orm import Session, sessionmaker

from app.db.models.common import utcnow
from app.db.session import SessionLocal
from app.events.outbox import OutboxEvent
from app.events.subscriptions import WebhookSubscription

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 600
REQUEST_TIMEOUT_SECONDS = 10.0


def backoff(attempts: int) -> timedelta:
    return timedelta(seconds=min(MAX_BACKOFF_SECONDS, 2 ** min(attempts, 10)))


def envelope(evt: OutboxEvent) -> dict:
    return {
        "event_id": evt.id,
        "topic": evt.topic,
        "entity_id": evt.entity_id,
        "request_id": evt.request_id,
        "occurred_at": evt.created_at.isoformat() if evt.created_at else None,
        "payload": evt.payload or {},
    }


async def post_event(client: httpx.AsyncClient, sub: WebhookSubscription, body: dict) -> str | None:
    """POST one envelope. Returns None on a 2xx, otherwise a short error."""
    headers = {k: str(v) for k, v in (sub.headers or {}).items()}
    try:
        resp = await client.post(sub.target_url, json=body, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        return f"{type(exc).__name__}: {exc}"
    if resp.is_success:
        return None
    return f"HTTP {resp.status_code}: {resp.text[:300]}"


async def dispatch_batch(
    client: httpx.AsyncClient,
    session_factory: sessionmaker[Session] = SessionLocal,
    limit: int = 50,
) -> int:
    """Run one delivery pass. Returns the number of events attempted."""
    with session_factory() as db:
        due = (
            db.query(OutboxEvent)
            .filter(OutboxEvent.delivered_at.is_(None), OutboxEvent.next_attempt_at <= utcnow())
            .order_by(OutboxEvent.created_at.asc())
            .limit(limit)
            .all()
        )
        if not due:
            return 0
        subs = db.query(WebhookSubscription).filter(WebhookSubscription.is_active.is_(True)).all()

        for evt in due:
            body = envelope(evt)
            errors: list[str] = []
            for sub in subs:
                if not sub.wants(evt.topic):
                    continue
                err = await post_event(client, sub, body)
                if err is None:
                    sub.consecutive_failures = 0
                    sub.last_error = None
                    sub.last_success_at = utcnow()
                    continue
                sub.consecutive_failures += 1
                sub.last_error = err
                errors.append(err)
                logger.warning("webhook %s rejected %s %s: %s", sub.name, evt.topic, evt.id, err)

            if errors:
                evt.attempts += 1
                evt.last_error = errors[-1]
                evt.next_attempt_at = utcnow() + backoff(evt.attempts)
            else:
                # Also retires events nobody subscribes to
                evt.delivered_at = utcnow()
                evt.last_error = None

        db.commit()
        return len(due)


async def run_dispatcher_forever(*, poll_interval_seconds: float = 1.0) -> None:
    async with httpx.AsyncClient() as client:
        while True:
            try:
                await dispatch_batch(client)
            except Exception:
                logger.exception("event dispatch pass failed")
            await asyncio.sleep(poll_interval_seconds)
