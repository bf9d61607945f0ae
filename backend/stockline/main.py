"""
Stockline merchant backend.

ARCHITECTURE:
- Telegram Bot / HTTP: merchants describe what happened in the shop
- Intent parser (Groq LLM, keyword fallback): text -> commands
- Command router: runs commands in a fixed priority order, one reply per message
- SQLite/Postgres: products, customers, sales and pending clarifications

The LLM only parses text. Every stock and money change is computed here.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockline.agent.registry import build_default_registry
from stockline.agent.router import CommandRouter
from stockline.api.routes import clarifications, merchants, messages, records
from stockline.core.config import settings
from stockline.db.init_db import init_db
from stockline.telegram.bot import start_bot_background, stop_bot_background

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: ensure tables, start Telegram polling if a token is set.
    Shutdown: stop polling.
    """
    logger.info("Initializing database...")
    init_db()

    if settings.TELEGRAM_BOT_TOKEN:
        logger.info("Starting Telegram bot...")
        start_bot_background(app.state.command_router)
    else:
        logger.warning("Telegram bot disabled (no token)")

    yield

    if settings.TELEGRAM_BOT_TOKEN:
        stop_bot_background()


app = FastAPI(
    title="Stockline Merchant API",
    description="Natural-language inventory, customers and sales for small merchants.",
    version="0.1.0",
    lifespan=lifespan,
)

# Built once; the API (via deps.get_router) and the Telegram bot share it
app.state.command_router = CommandRouter(build_default_registry())

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
    max_age=600,
)

app.include_router(merchants.router, prefix="/merchants", tags=["merchants"])
app.include_router(messages.router, prefix="/merchants", tags=["messages"])
app.include_router(records.router, prefix="/merchants", tags=["records"])
app.include_router(clarifications.router, prefix="/merchants", tags=["clarifications"])


@app.get("/health")
def health():
    return {"status": "ok", "telegram": bool(settings.TELEGRAM_BOT_TOKEN)}
