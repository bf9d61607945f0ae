"""
Product ledger with a single base unit of measure per product.

All stock and prices are stored relative to base_unit_of_measure.
Alternative units (crate, carton, ...) carry the number of base units in one
of that unit. base_unit_of_measure stays NULL until it can be inferred or the
merchant tells us.
"""
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Float, ForeignKey, DateTime, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stockline.db.base import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("merchant_id", "name", name="uq_product_merchant_name"),
        CheckConstraint("current_stock_in_base_units >= 0", name="ck_product_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    base_unit_of_measure = Column(String(32), nullable=True)
    current_stock_in_base_units = Column(Float, nullable=False, default=0.0)
    standard_selling_price_per_base_unit = Column(Float, nullable=True)
    cost_price_per_base_unit = Column(Float, nullable=True)
    reorder_level = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    merchant = relationship("Merchant", backref="products")
    alternative_units = relationship(
        "ProductUnit",
        back_populates="product",
        order_by="ProductUnit.position",
        cascade="all, delete-orphan",
    )

    def get_alternative_unit(self, unit_name: str) -> Optional["ProductUnit"]:
        for unit in self.alternative_units:
            if unit.unit_name == unit_name:
                return unit
        return None

    def conversion_table(self) -> dict:
        """{unit_name: conversion_factor_to_base} in stored order."""
        return {u.unit_name: u.conversion_factor_to_base for u in self.alternative_units}

    def __repr__(self):
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock_in_base_units} {self.base_unit_of_measure}>"


class ProductUnit(Base):
    """One alternative unit: conversion_factor_to_base base units per one unit_name."""
    __tablename__ = "product_units"
    __table_args__ = (
        UniqueConstraint("product_id", "unit_name", name="uq_product_unit_name"),
        CheckConstraint("conversion_factor_to_base > 0", name="ck_product_unit_factor_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_name = Column(String(32), nullable=False)
    conversion_factor_to_base = Column(Float, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="alternative_units")
