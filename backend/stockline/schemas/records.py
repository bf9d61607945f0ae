"""Read models for the records API."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MerchantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = None
    telegram_chat_id: Optional[str] = None


class MerchantRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ProductUnitRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    unit_name: str
    conversion_factor_to_base: float


class ProductRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    base_unit_of_measure: Optional[str] = None
    current_stock_in_base_units: float
    standard_selling_price_per_base_unit: Optional[float] = None
    cost_price_per_base_unit: Optional[float] = None
    reorder_level: float
    alternative_units: List[ProductUnitRecord] = []


class CustomerRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    tags: List[str] = []
    total_spent: Decimal
    last_purchase_date: Optional[datetime] = None


class SaleItemRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: Optional[int] = None
    product_name: str
    quantity: float
    unit: Optional[str] = None
    price_per_unit: Decimal
    total: Decimal


class SaleCustomerRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: Optional[int] = None
    customer_name: str


class SaleRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    total_amount: Decimal
    amount_paid: Decimal
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[SaleItemRecord] = []
    customer_links: List[SaleCustomerRecord] = []


class ClarificationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    product_name: Optional[str] = None
    customer_name: Optional[str] = None
    status: str
    prompt: str
    data_needed: Dict[str, Any] = {}
    created_at: Optional[datetime] = None


class MessageIn(BaseModel):
    text: str


class ClarificationAnswer(BaseModel):
    answer: str = Field(..., min_length=1)


class ReplyOut(BaseModel):
    reply: str
