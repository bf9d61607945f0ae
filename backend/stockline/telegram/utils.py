"""
Telegram chat -> merchant resolution.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from stockline.models.merchant import Merchant

logger = logging.getLogger(__name__)


def get_merchant_by_telegram_id(db: Session, chat_id: int) -> Optional[Merchant]:
    """
    Resolve the merchant for a Telegram chat.

    Resolution Strategy:
    1. Explicit link: Merchant.telegram_chat_id == chat_id
    2. Single-merchant installs: the only merchant, if there is exactly one
    3. None otherwise (the chat must be linked first)
    """
    chat_id_str = str(chat_id)

    merchant = (
        db.query(Merchant)
        .filter(Merchant.telegram_chat_id == chat_id_str)
        .order_by(Merchant.id)
        .first()
    )
    if merchant:
        logger.info(f"[TELEGRAM] chat_id={chat_id} -> merchant_id={merchant.id} (linked)")
        return merchant

    merchants = db.query(Merchant).order_by(Merchant.id).limit(2).all()
    if len(merchants) == 1:
        logger.warning(
            f"[TELEGRAM] No link for chat_id={chat_id}; using the only merchant "
            f"merchant_id={merchants[0].id}"
        )
        return merchants[0]

    logger.error(f"[TELEGRAM] No merchant linked to chat_id={chat_id} ({len(merchants)} candidate(s))")
    return None
