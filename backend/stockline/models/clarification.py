"""
PendingClarification: a durable, resumable question.

Lifecycle: pending -> resolved | cancelled. Nothing else about the record
changes after creation except that transition (a pending record can be
refreshed in place when the same question is raised again).

data_needed always holds the original intent + params so the operation can be
re-run without parsing free text again.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from stockline.db.base import Base

STATUS_PENDING = "pending"
STATUS_RESOLVED = "resolved"
STATUS_CANCELLED = "cancelled"


class PendingClarification(Base):
    __tablename__ = "pending_clarifications"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=True)
    customer_name = Column(String(200), nullable=True)
    status = Column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    prompt = Column(Text, nullable=False)
    data_needed = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    merchant = relationship("Merchant", backref="clarifications")

    def __repr__(self):
        return f"<PendingClarification id={self.id} type={self.type} status={self.status}>"
