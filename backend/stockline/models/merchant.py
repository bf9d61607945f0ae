from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from stockline.db.base import Base


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(64), nullable=True)
    telegram_chat_id = Column(String(64), unique=True, nullable=True)  # link Telegram to this merchant
    created_at = Column(DateTime(timezone=True), server_default=func.now())
