from __future__ import annotations
import contextvars

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default="anonymous")

def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)

def get_request_id() -> str | None:
    return _request_id.get()

def set_actor_id(actor_id: str | None) -> None:
    _actor_id.set(actor_id or "anonymous")

def get_actor_id() -> str:
    return _actor_id.get()
