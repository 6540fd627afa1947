"""
Invoice Bot Backend.

ARCHITECTURE:
- Telegram Bot: operator chat (webhook route or background polling)
- Conversation Orchestrator: stage machine, one message at a time per user
- SQLite/Postgres DB: conversation state, catalog, invoices, monthly counters
- PDF renderer: in-process reportlab, or an external service via PDF_SERVICE_URL

Conversation state lives in the database, never in process memory, so the
webhook can be served by any number of workers.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from invoice_bot.api.routes import pdf, records, telegram
from invoice_bot.core.config import settings
from invoice_bot.core.logging_config import configure_logging
from invoice_bot.db.init_db import init_db
from invoice_bot.services.state_cleanup import start_cleanup_scheduler, stop_cleanup_scheduler
from invoice_bot.telegram.bot import (
    start_bot_background,
    start_webhook_bot,
    stop_bot_background,
    stop_webhook_bot,
)

POLLING_MODE = "polling"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Configure logging, initialize database tables
    2. Start the stale-conversation sweep
    3. Start Telegram: polling thread or webhook bot (if token provided)

    Shutdown:
    1. Stop Telegram
    2. Stop the sweep
    """
    configure_logging()
    print("[*] Initializing database...")
    init_db()
    print("[OK] Database initialized")

    start_cleanup_scheduler()

    if not settings.TELEGRAM_BOT_TOKEN:
        print("[WARN] Telegram bot disabled (no token)")
    elif settings.TELEGRAM_MODE == POLLING_MODE:
        print("[*] Starting Telegram bot (polling)...")
        start_bot_background()
    else:
        print("[*] Starting Telegram bot (webhook)...")
        await start_webhook_bot()
    if settings.AUTHORIZED_USER_ID == 0:
        print("[WARN] AUTHORIZED_USER_ID not set, every sender will be rejected")

    yield

    try:
        stop_bot_background()
        await stop_webhook_bot()
    finally:
        stop_cleanup_scheduler()


app = FastAPI(
    title="Invoice Bot API",
    description="Telegram invoice builder: webhook, invoice records, PDF rendering.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(telegram.router, tags=["telegram"])
app.include_router(records.router, prefix="/records", tags=["records"])
app.include_router(pdf.router, tags=["pdf"])


@app.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "telegram_mode": settings.TELEGRAM_MODE,
    }
