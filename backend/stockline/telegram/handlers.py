"""Telegram text messages -> merchant command engine."""
import logging

from telegram import Update
from telegram.ext import ContextTypes

from stockline.agent.message_handler import COMMAND_EXAMPLES, handle_message
from stockline.db.session import SessionLocal
from stockline.telegram.utils import get_merchant_by_telegram_id

logger = logging.getLogger(__name__)

async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command"""
    chat_id = update.effective_chat.id if update.effective_chat else None
    await update.message.reply_text(
        "Welcome! Tell me what happened in the shop and I'll keep the books.\n\n"
        f"{COMMAND_EXAMPLES}\n\n"
        f"Your Chat ID: {chat_id}\n"
        "Link it to your merchant account to get started."
    )


async def handle_text_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message or not update.message.text:
        return

    text = update.message.text.strip()
    chat_id = update.effective_chat.id if update.effective_chat else None
    if chat_id is None:
        return

    logger.info(f"[Message] chat_id={chat_id}, text='{text}'")

    db = SessionLocal()
    try:
        merchant = get_merchant_by_telegram_id(db, chat_id)
        if not merchant:
            await update.message.reply_text(
                "No merchant account is linked to this chat.\n\n"
                f"Your Chat ID: {chat_id}"
            )
            return

        reply = await handle_message(db, merchant, text, context.bot_data["command_router"])
        await update.message.reply_text(reply)
    except Exception as e:
        logger.error(f"[Message] chat_id={chat_id} failed: {type(e).__name__}: {e}", exc_info=True)
        await update.message.reply_text("Sorry, something went wrong. Please try again.")
    finally:
        db.close()
