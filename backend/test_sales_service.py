"""Sale transaction engine: all-or-nothing sales, stock decrements, customer credit."""
import asyncio
from decimal import Decimal

import pytest

from stockline.core.exceptions import TransactionAbortError, ValidationError
from stockline.models.product import Product
from stockline.models.sale import SALE_COMPLETE, SALE_INCOMPLETE, Sale
from stockline.schemas.commands import RecordSaleParams
from stockline.services import sales_service
from stockline.services.clarifications import ClarificationType


def sell(db, merchant, resolver, **fields):
    params = RecordSaleParams(**fields)
    return asyncio.run(sales_service.record_sale(
        db, merchant.id, resolver, params, params.model_dump(mode="json", exclude_none=True),
    ))


def stock_of(db, name):
    return db.query(Product).filter(Product.name == name).one().current_stock_in_base_units


# ==============================================================================
# COMMITTED SALES
# ==============================================================================

def test_sale_at_standard_price(db, merchant, resolver, make_product, make_customer):
    make_product("Zobo Delight", base_unit="bottle", stock=10, price=1000)
    ada = make_customer("Ada Obi")

    outcome = sell(db, merchant, resolver, customer_names=["Ada Obi"],
                   items=[{"product_name": "zobo delight", "quantity": 2}])

    assert outcome.committed
    sale = outcome.sale
    assert sale.total_amount == Decimal("2000")
    assert sale.amount_paid == Decimal("2000")
    assert sale.status == SALE_COMPLETE
    assert stock_of(db, "Zobo Delight") == 8
    db.refresh(ada)
    assert ada.total_spent == Decimal("2000")
    assert ada.last_purchase_date is not None
    assert sales_service.describe_sale(sale) == (
        "Sale recorded: 2 bottles Zobo Delight (₦2,000). Customer: Ada Obi. Total ₦2,000, paid ₦2,000."
    )


def test_partial_payment_is_incomplete(db, merchant, resolver, make_product):
    make_product("Lace Fabric", base_unit="meter", stock=50, price=3500)

    outcome = sell(db, merchant, resolver, total_value=70000, amount_paid=25000,
                   items=[{"product_name": "lace fabric", "quantity": 20}])

    assert outcome.sale.status == SALE_INCOMPLETE
    assert outcome.sale.total_amount == Decimal("70000")
    assert "Balance ₦45,000 outstanding." in sales_service.describe_sale(outcome.sale)


def test_bulk_unit_sale_with_item_price(db, merchant, resolver, make_product):
    make_product("Zobo Delight", base_unit="bottle", stock=24, price=1000, units={"crate": 12})

    outcome = sell(db, merchant, resolver,
                   items=[{"product_name": "Zobo Delight", "quantity": 1, "unit": "crate", "price_per_unit": 10000}])

    assert outcome.sale.total_amount == Decimal("10000")
    assert outcome.sale.items[0].quantity == 12
    assert stock_of(db, "Zobo Delight") == 12


def test_credit_is_split_between_customers(db, merchant, resolver, make_product, make_customer):
    make_product("Rice", base_unit="kg", stock=10, price=1500)
    ada = make_customer("Ada Obi")
    bola = make_customer("Bola Ade")

    outcome = sell(db, merchant, resolver, customer_names=["Ada Obi", "Bola Ade"],
                   items=[{"product_name": "rice", "quantity": 2}])

    assert [link.customer_name for link in outcome.sale.customer_links] == ["Ada Obi", "Bola Ade"]
    db.refresh(ada)
    db.refresh(bola)
    assert ada.total_spent == Decimal("1500")
    assert bola.total_spent == Decimal("1500")


# ==============================================================================
# BLOCKED SALES (nothing written)
# ==============================================================================

def test_insufficient_stock_writes_nothing(db, merchant, resolver, make_product):
    make_product("Shoes", base_unit="pair", stock=3, price=5000)

    outcome = sell(db, merchant, resolver, items=[{"product_name": "shoes", "quantity": 5}])

    assert not outcome.committed
    assert [c.type for c in outcome.clarifications] == [ClarificationType.INSUFFICIENT_STOCK]
    assert outcome.clarifications[0].data_needed["available_quantity"] == 3
    assert stock_of(db, "Shoes") == 3
    assert db.query(Sale).count() == 0


def test_items_of_same_product_share_the_stock(db, merchant, resolver, make_product):
    make_product("Zobo Delight", base_unit="bottle", stock=10, price=1000)

    outcome = sell(db, merchant, resolver, items=[
        {"product_name": "Zobo Delight", "quantity": 6},
        {"product_name": "zobo delight", "quantity": 6},
    ])

    assert [c.type for c in outcome.clarifications] == [ClarificationType.INSUFFICIENT_STOCK]
    assert outcome.clarifications[0].data_needed["item_index"] == 1
    assert stock_of(db, "Zobo Delight") == 10


def test_unknown_customer_blocks_the_sale(db, merchant, resolver, make_product):
    make_product("Rice", base_unit="kg", stock=10, price=1500)

    outcome = sell(db, merchant, resolver, customer_names=["Emeka"],
                   items=[{"product_name": "rice", "quantity": 1}])

    assert [c.type for c in outcome.clarifications] == [ClarificationType.CUSTOMER_NOT_FOUND]
    assert "Reply 'yes' to add them" in outcome.clarifications[0].prompt
    assert stock_of(db, "Rice") == 10
    assert db.query(Sale).count() == 0


def test_every_problem_is_reported_together(db, merchant, resolver, make_product):
    make_product("Coke", base_unit="bottle", stock=48, price=400, units={"crate": 24})
    make_product("Agbada", base_unit="piece", stock=5)

    outcome = sell(db, merchant, resolver, items=[
        {"product_name": "coke", "quantity": 1, "unit": "carton"},
        {"product_name": "agbada", "quantity": 1},
        {"product_name": "sardines", "quantity": 2},
        {"quantity": 4},
    ])

    assert [c.type for c in outcome.clarifications] == [
        ClarificationType.UNIT_CONVERSION_REQUIRED,
        ClarificationType.SELLING_PRICE_REQUIRED,
        ClarificationType.PRODUCT_NOT_FOUND,
        ClarificationType.PRODUCT_NOT_FOUND,
    ]
    assert outcome.clarifications[1].prompt == "What is the selling price per piece of Agbada?"
    assert outcome.clarifications[3].prompt == "I couldn't tell which product you meant. Reply with the product name."
    assert stock_of(db, "Coke") == 48


def test_unknown_unit_word_blocks_the_sale(db, merchant, resolver, make_product):
    make_product("Honey", base_unit="bottle", stock=10, price=2500)

    with pytest.raises(ValidationError) as exc_info:
        sell(db, merchant, resolver, items=[{"product_name": "honey", "quantity": 3, "unit": "jars"}])

    assert "jars" in exc_info.value.message
    db.rollback()
    assert stock_of(db, "Honey") == 10
    assert db.query(Sale).count() == 0


def test_empty_items_are_skipped(db, merchant, resolver, make_product):
    make_product("Rice", base_unit="kg", stock=10, price=1500)

    outcome = sell(db, merchant, resolver, items=[{}, {"product_name": "rice"}])

    assert outcome.skipped_items == 1
    # a name without a quantity sells one
    assert stock_of(db, "Rice") == 9

    with pytest.raises(ValidationError):
        sell(db, merchant, resolver, items=[{}])


def test_commit_aborts_when_stock_moved(db, merchant, make_product):
    product = make_product("Shoes", base_unit="pair", stock=3, price=5000)
    staged = [sales_service.StagedSaleItem(
        product=product,
        quantity_in_base=5,
        price_per_base_unit=Decimal("5000"),
        total=Decimal("25000.00"),
        stated_quantity=5,
        stated_unit=None,
    )]

    with pytest.raises(TransactionAbortError):
        sales_service.commit_sale(db, merchant.id, staged, {product.id: 5}, [], Decimal("25000"), Decimal("25000"))

    assert db.query(Sale).count() == 0
    assert stock_of(db, "Shoes") == 3


def test_sale_status():
    assert sales_service.sale_status(Decimal("100"), Decimal("100")) == SALE_COMPLETE
    assert sales_service.sale_status(Decimal("100"), Decimal("120")) == SALE_COMPLETE
    assert sales_service.sale_status(Decimal("100"), Decimal("99.99")) == SALE_INCOMPLETE
