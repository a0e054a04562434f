from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.context import get_actor_id, get_request_id
from app.db.models.audit import AuditRecord

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str | None:
    # First X-Forwarded-For hop when behind a proxy
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _jsonable(details: dict | None) -> dict[str, Any]:
    try:
        return json.loads(json.dumps(details or {}, default=str))
    except (TypeError, ValueError):
        return {"_unserializable": repr(details)}


def audit(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    details: dict | None = None,
    actor_id: str | None = None,
    client_ip: str | None = None,
) -> AuditRecord | None:
    """Record a committed change.

    Call only after the business transaction committed. The record is written
    through its own Session on the same bind, so nothing the caller has
    pending is flushed with it. A failed write is logged and dropped.
    """
    try:
        with Session(bind=db.get_bind(), expire_on_commit=False) as audit_db:
            row = AuditRecord(
                actor_id=actor_id or get_actor_id(),
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                request_id=get_request_id(),
                client_ip=client_ip,
                details=_jsonable(details),
            )
            audit_db.add(row)
            audit_db.commit()
            return row
    except Exception:
        logger.exception("audit write failed for %s %s", action, entity_id)
        return None
