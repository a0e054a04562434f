from __future__ import annotations
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from app.core.context import set_actor_id, set_request_id

class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or request.headers.get("x-request-id") or str(uuid.uuid4())
        set_request_id(rid)
        set_actor_id(request.headers.get("X-User-Id"))
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        return response
