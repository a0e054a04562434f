from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.security import Principal, get_principal, require_admin
from app.db.session import get_db, transaction
from app.events import bus
from app.events.outbox import OutboxEvent
from app.events.subscriptions import WebhookSubscription

router = APIRouter(prefix="/admin/events", tags=["admin_events"])


class SubscriptionIn(BaseModel):
    name: str = Field(default="subscription", max_length=128)
    topic_pattern: str = Field(..., min_length=1, max_length=64)
    target_url: str = Field(..., min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True


class ToggleIn(BaseModel):
    is_active: bool | None = None


class PublishIn(BaseModel):
    topic: str = Field(..., min_length=1, max_length=64)
    entity_id: str | None = None
    payload: dict = Field(default_factory=dict)


def _iso(value):
    return value.isoformat() if value else None


def _subscription_out(s: WebhookSubscription) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "topic_pattern": s.topic_pattern,
        "target_url": s.target_url,
        "headers": s.headers or {},
        "is_active": bool(s.is_active),
        "consecutive_failures": s.consecutive_failures,
        "last_error": s.last_error,
        "last_success_at": _iso(s.last_success_at),
        "created_at": _iso(s.created_at),
    }


def _event_out(e: OutboxEvent) -> dict:
    return {
        "id": e.id,
        "topic": e.topic,
        "entity_id": e.entity_id,
        "payload": e.payload or {},
        "delivered": e.delivered,
        "attempts": e.attempts,
        "next_attempt_at": _iso(e.next_attempt_at),
        "last_error": e.last_error,
        "created_at": _iso(e.created_at),
    }


@router.get("/subscriptions")
def list_subscriptions(db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    require_admin(principal)
    subs = db.query(WebhookSubscription).order_by(WebhookSubscription.created_at.desc()).all()
    return [_subscription_out(s) for s in subs]


@router.post("/subscriptions", status_code=201)
def create_subscription(payload: SubscriptionIn, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    require_admin(principal)
    with transaction(db):
        sub = WebhookSubscription(**payload.model_dump())
        db.add(sub)
        db.flush()
        sub_id = sub.id
    return {"ok": True, "id": sub_id}


@router.post("/subscriptions/{sub_id}/toggle")
def toggle_subscription(
    sub_id: str,
    payload: ToggleIn | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require_admin(principal)
    with transaction(db):
        sub = db.get(WebhookSubscription, sub_id)
        if sub is None:
            raise HTTPException(404, "Unknown subscription")
        active = payload.is_active if payload and payload.is_active is not None else not sub.is_active
        sub.is_active = active
        if active:
            sub.consecutive_failures = 0
    return {"ok": True, "id": sub_id, "is_active": active}


@router.delete("/subscriptions/{sub_id}")
def delete_subscription(sub_id: str, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    require_admin(principal)
    with transaction(db):
        sub = db.get(WebhookSubscription, sub_id)
        if sub is None:
            return {"ok": True, "deleted": False}
        db.delete(sub)
    return {"ok": True, "deleted": True}


@router.get("/outbox")
def list_outbox(
    pending_only: bool = False,
    entity_id: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require_admin(principal)
    q = db.query(OutboxEvent)
    if pending_only:
        q = q.filter(OutboxEvent.delivered_at.is_(None))
    if entity_id:
        q = q.filter(OutboxEvent.entity_id == entity_id)
    rows = q.order_by(OutboxEvent.created_at.desc()).limit(min(limit, 1000)).all()
    return [_event_out(e) for e in rows]


@router.post("/publish", status_code=201)
def publish_event(payload: PublishIn, db: Session = Depends(get_db), principal: Principal = Depends(get_principal)):
    """Queue a hand-made event, for testing webhook receivers."""
    require_admin(principal)
    with transaction(db) as uow:
        evt = bus.publish(uow, payload.topic, dict(payload.payload), entity_id=payload.entity_id)
        event_id = evt.id
    return {"ok": True, "event_id": event_id, "topic": payload.topic}
