from stockline.models.merchant import Merchant
from stockline.models.product import Product, ProductUnit
from stockline.models.customer import Customer
from stockline.models.sale import Sale, SaleItem, SaleCustomer
from stockline.models.clarification import PendingClarification

__all__ = [
    "Merchant",
    "Product",
    "ProductUnit",
    "Customer",
    "Sale",
    "SaleItem",
    "SaleCustomer",
    "PendingClarification",
]
