"""Merchant registration. One merchant per shop; Telegram chats link by chat id."""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from stockline.api.deps import get_db, get_merchant
from stockline.core.exceptions import BusinessError
from stockline.models.merchant import Merchant
from stockline.schemas.records import MerchantCreate, MerchantRecord

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=MerchantRecord, status_code=status.HTTP_201_CREATED)
def create_merchant(body: MerchantCreate, db: Session = Depends(get_db)):
    if body.telegram_chat_id:
        taken = db.query(Merchant).filter(Merchant.telegram_chat_id == body.telegram_chat_id).first()
        if taken:
            raise BusinessError.conflict("Telegram chat is already linked to another merchant")
    merchant = Merchant(name=body.name.strip(), phone=body.phone, telegram_chat_id=body.telegram_chat_id)
    db.add(merchant)
    db.commit()
    db.refresh(merchant)
    logger.info(f"Created merchant_id={merchant.id} name='{merchant.name}'")
    return merchant


@router.get("/{merchant_id}", response_model=MerchantRecord)
def read_merchant(merchant: Merchant = Depends(get_merchant)):
    return merchant
