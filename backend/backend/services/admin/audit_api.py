from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import Principal, get_principal, require_admin
from app.db.models.audit import AuditRecord
from app.db.session import get_db

router = APIRouter(prefix="/admin", tags=["admin_audit"])


@router.get("/audit-logs")
def list_audit_logs(
    action: str | None = None,
    entity_id: str | None = None,
    actor_id: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    require_admin(principal)
    q = db.query(AuditRecord)
    if action:
        q = q.filter(AuditRecord.action == action)
    if entity_id:
        q = q.filter(AuditRecord.entity_id == entity_id)
    if actor_id:
        q = q.filter(AuditRecord.actor_id == actor_id)
    rows = q.order_by(AuditRecord.occurred_at.desc()).limit(min(limit, 1000)).all()
    return [
        {
            "id": r.id,
            "occurred_at": r.occurred_at.isoformat(),
            "actor_id": r.actor_id,
            "action": r.action,
            "entity_type": r.entity_type,
            "entity_id": r.entity_id,
            "request_id": r.request_id,
            "client_ip": r.client_ip,
            "details": r.details or {},
        }
        for r in rows
    ]
