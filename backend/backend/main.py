from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core import settings
from app.core.errors import StockPlannerError
from app.core.logging_config import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.db.base import Base
from app.db.session import engine

# Register models
from app.db import models  # noqa: F401

from services.inventory.api import router as inventory_router
from services.procurement.api import router as procurement_router
from services.production.api import router as production_router
from services.orders.api import router as orders_router
from services.admin.audit_api import router as audit_admin_router
from services.admin.events_api import router as events_admin_router
from services.analytics.api import router as analytics_router

logger = logging.getLogger(__name__)

app = FastAPI(title="PCB Stock Planner")
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(StockPlannerError)
async def _stock_planner_error(request: Request, exc: StockPlannerError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def _startup():
    configure_logging()
    # Dev-friendly schema creation; there are no migrations
    Base.metadata.create_all(bind=engine)

    if settings.EVENT_DISPATCH_ENABLED:
        from app.events.dispatcher import run_dispatcher_forever

        app.state.dispatcher = asyncio.create_task(
            run_dispatcher_forever(poll_interval_seconds=settings.EVENT_POLL_SECONDS)
        )


@app.on_event("shutdown")
async def _shutdown():
    task = getattr(app.state, "dispatcher", None)
    if task is not None:
        task.cancel()


app.include_router(inventory_router)
app.include_router(procurement_router)
app.include_router(production_router)
app.include_router(orders_router)
app.include_router(analytics_router)
app.include_router(audit_admin_router)
app.include_router(events_admin_router)


@app.get("/health")
def health():
    return {"ok": True}
