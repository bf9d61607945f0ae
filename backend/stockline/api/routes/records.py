"""Read-only records: products, customers, sales."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockline.api.deps import get_db, get_merchant
from stockline.models.merchant import Merchant
from stockline.schemas.records import CustomerRecord, ProductRecord, SaleRecord
from stockline.services import customer_service, inventory_service, sales_service

router = APIRouter()


@router.get("/{merchant_id}/products", response_model=List[ProductRecord])
def list_products(
    low_stock: bool = Query(False),
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
):
    if low_stock:
        return inventory_service.low_stock_products(db, merchant.id)
    return inventory_service.list_products(db, merchant.id)


@router.get("/{merchant_id}/customers", response_model=List[CustomerRecord])
def list_customers(
    search: Optional[str] = Query(None),
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
):
    customers = customer_service.list_customers(db, merchant.id)
    if search:
        needle = search.strip().lower()
        customers = [c for c in customers if needle in c.name.lower()]
    return customers


@router.get("/{merchant_id}/sales", response_model=List[SaleRecord])
def list_sales(
    limit: int = Query(50, ge=1, le=500),
    merchant: Merchant = Depends(get_merchant),
    db: Session = Depends(get_db),
):
    return sales_service.list_sales(db, merchant.id, limit=limit)
