# isp_billing/main.py
from dotenv import load_dotenv

# Load .env before anything reads the environment
load_dotenv()

import asyncio
import logging

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .core.changes import change_feed
from .core.config import get_settings
from .core.constants import Table
from .core.exceptions import BillingError
from .core.websockets import manager
from .db.init_db import setup_database

# API Routers
from .api import health as health_api
from .api.errors import billing_error_handler
from .api.clients import main as clients_main_api
from .api.debts import main as debts_main_api
from .api.expenses import main as expenses_main_api
from .api.messages import main as messages_main_api
from .api.settings import main as settings_main_api
from .api.stats import main as stats_main_api

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="ISP Billing",
    version="1.0.0",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
)

_unsubscribe_dashboard = None


@app.on_event("startup")
async def on_startup():
    """Create tables, seed default settings and hook the dashboard to the change feed."""
    global _unsubscribe_dashboard
    setup_database()
    manager.bind_loop(asyncio.get_running_loop())
    _unsubscribe_dashboard = change_feed.subscribe("*", manager.notify_table_changed)
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def on_shutdown():
    if _unsubscribe_dashboard is not None:
        _unsubscribe_dashboard()


app.add_exception_handler(BillingError, billing_error_handler)


# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# --- Dashboard websocket ---
@app.websocket("/ws/dashboard")
async def websocket_dashboard(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


class TableUpdate(BaseModel):
    tables: list[Table] = []


@app.post("/api/internal/notify-update", include_in_schema=False)
async def notify_update(update: TableUpdate | None = None):
    """
    Called by the scheduler process after a scan or reminder run changed data,
    since its commits never reach this process's change feed.
    """
    tables = update.tables if update else []
    if not tables:
        await manager.broadcast_event("db_updated")
    for table in tables:
        await manager.broadcast_event("db_updated", {"table": table.value})
    return {"status": "broadcast_sent", "tables": [t.value for t in tables]}


# --- Routers ---
app.include_router(health_api.router, prefix="/api")
app.include_router(clients_main_api.router, prefix="/api", tags=["Clients"])
app.include_router(debts_main_api.router, prefix="/api", tags=["Debts"])
app.include_router(expenses_main_api.router, prefix="/api", tags=["Expenses"])
app.include_router(messages_main_api.router, prefix="/api", tags=["Messages"])
app.include_router(settings_main_api.router, prefix="/api", tags=["Settings"])
app.include_router(stats_main_api.router, prefix="/api", tags=["Stats"])
