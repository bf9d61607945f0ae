"""
Sale: the permanent, immutable record of a stock decrement.

Items and customer links snapshot the product/customer name so the record
stays readable after the product or customer is deleted.
status == "complete" iff amount_paid >= total_amount.
"""
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Numeric, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stockline.db.base import Base

SALE_COMPLETE = "complete"
SALE_INCOMPLETE = "incomplete"


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default=SALE_COMPLETE)  # complete | incomplete
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    merchant = relationship("Merchant", backref="sales")
    items = relationship("SaleItem", back_populates="sale", order_by="SaleItem.position", cascade="all, delete-orphan")
    customer_links = relationship("SaleCustomer", back_populates="sale", cascade="all, delete-orphan")


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Float, nullable=False)  # base units
    unit = Column(String(32), nullable=True)  # base unit at time of sale
    price_per_unit = Column(Numeric(12, 4), nullable=False)  # per base unit
    total = Column(Numeric(12, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    sale = relationship("Sale", back_populates="items")


class SaleCustomer(Base):
    __tablename__ = "sale_customers"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = Column(String(200), nullable=False)

    sale = relationship("Sale", back_populates="customer_links")
