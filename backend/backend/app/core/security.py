from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import HTTPException, Request


@dataclass
class Principal:
    user_id: str | None = None
    username: str = "anonymous"
    roles: list[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def get_principal(request: Request) -> Principal:
    """Caller identity as forwarded by the gateway.

    Credential checks happen upstream; this service only trusts the
    X-User-Id / X-User-Role headers it is handed.
    """
    user_id = request.headers.get("X-User-Id")
    roles = [r.strip().lower() for r in (request.headers.get("X-User-Role") or "").split(",") if r.strip()]
    return Principal(user_id=user_id, username=user_id or "anonymous", roles=roles)


def require_admin(principal: Principal) -> None:
    if not principal.has_role("admin"):
        raise HTTPException(403, "admin role required")
