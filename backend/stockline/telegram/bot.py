"""
Telegram polling in a background thread, started from the FastAPI lifespan.
"""
import asyncio
import logging
import threading
from typing import Optional

from telegram import error
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from stockline.agent.router import CommandRouter
from stockline.core.config import settings
from stockline.telegram.handlers import handle_start, handle_text_message

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None
_loop: Optional[asyncio.AbstractEventLoop] = None


def build_application(token: str, command_router: CommandRouter) -> Application:
    app = Application.builder().token(token).build()
    app.bot_data["command_router"] = command_router
    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text_message))
    return app


async def _start_polling_with_retry(app: Application, max_retries: int = 3, initial_backoff: int = 2) -> bool:
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] Polling started")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] Conflict: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] Failed after {max_retries} retries. Bot disabled. Error: {e}")
    return False


def _run_bot(command_router: CommandRouter) -> None:
    global _bot_app, _loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _loop = loop

    try:
        _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN, command_router)
        loop.run_until_complete(_bot_app.initialize())
        loop.run_until_complete(_bot_app.start())
        if loop.run_until_complete(_start_polling_with_retry(_bot_app)):
            loop.run_forever()
    except Exception as e:
        logger.error(f"Telegram bot error: {e}", exc_info=True)
    finally:
        if _bot_app:
            try:
                if _bot_app.updater.running:
                    loop.run_until_complete(_bot_app.updater.stop())
                if _bot_app.running:
                    loop.run_until_complete(_bot_app.stop())
                loop.run_until_complete(_bot_app.shutdown())
            except Exception as e:
                logger.warning(f"Telegram shutdown error: {e}")
        loop.close()
        _loop = None


def start_bot_background(command_router: CommandRouter) -> None:
    if not settings.TELEGRAM_BOT_TOKEN:
        return
    t = threading.Thread(target=_run_bot, args=(command_router,), name="telegram-bot", daemon=True)
    t.start()


def stop_bot_background() -> None:
    """Stop the polling loop. Called on FastAPI shutdown."""
    if _loop is not None and _loop.is_running():
        _loop.call_soon_threadsafe(_loop.stop)
