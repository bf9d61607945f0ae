"""
SALE TRANSACTION ENGINE

A sale is all-or-nothing. Every line item is checked first (product match,
units, stock, price); if anything needs a clarification NOTHING is written
and all the questions go back to the merchant together. Only a fully clean
sale is committed, as one transaction:
- the Sale row with its items and customer links
- a conditional stock decrement per product (never below zero)
- each linked customer's total_spent / last_purchase_date

If the store rejects any of it (including another sale having taken the
stock in the meantime) the whole transaction rolls back.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockline.core.exceptions import (
    AmbiguousUnitError,
    ClarificationNeeded,
    InsufficientStockError,
    NotFoundError,
    TransactionAbortError,
    ValidationError,
)
from stockline.models.customer import Customer
from stockline.models.product import Product
from stockline.models.sale import SALE_COMPLETE, SALE_INCOMPLETE, Sale, SaleCustomer, SaleItem
from stockline.schemas.commands import RecordSaleParams, SaleItemParams
from stockline.services import clarifications
from stockline.services.clarifications import ClarificationRequest
from stockline.services.customer_service import credit_purchase
from stockline.services.entity_matcher import KIND_CUSTOMER, KIND_PRODUCT, EntityResolver
from stockline.services.formatting import format_money, format_quantity, pluralize
from stockline.services.units import MissingConversionError, factor_to_base, normalize_unit

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# Float slack when comparing stock levels
STOCK_EPSILON = 1e-9


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class StagedSaleItem:
    product: Product
    quantity_in_base: float
    price_per_base_unit: Decimal
    total: Decimal
    stated_quantity: float
    stated_unit: Optional[str]


@dataclass
class SaleOutcome:
    sale: Optional[Sale] = None
    clarifications: List[ClarificationRequest] = field(default_factory=list)
    skipped_items: int = 0

    @property
    def committed(self) -> bool:
        return self.sale is not None


class _StockChanged(Exception):
    """Conditional decrement matched no row."""


def sale_status(total_amount: Decimal, amount_paid: Decimal) -> str:
    return SALE_COMPLETE if amount_paid >= total_amount else SALE_INCOMPLETE


async def _resolve_customers(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    names: List[str],
    raw_params: Dict[str, Any],
    pending: List[ClarificationRequest],
) -> List[Customer]:
    customers: List[Customer] = []
    for name in names:
        customer = await resolver.resolve_customer(db, merchant_id, name)
        if customer is None:
            suggestion = await resolver.suggest(db, merchant_id, name, KIND_CUSTOMER)
            pending.append(clarifications.customer_not_found(name, "record_sale", raw_params, suggestion=suggestion))
            continue
        if all(c.id != customer.id for c in customers):
            customers.append(customer)
    return customers


async def _stage_item(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    index: int,
    item: SaleItemParams,
    raw_params: Dict[str, Any],
    decrements: Dict[int, float],
) -> StagedSaleItem:
    """Check one line item.

    Raises a ClarificationNeeded subclass carrying the blocking question, or
    ValidationError for a unit word outside the vocabulary.
    """
    if not item.product_name:
        raise NotFoundError(clarifications.product_not_found("", "record_sale", raw_params, item_index=index))

    product = await resolver.resolve_product(db, merchant_id, item.product_name)
    if product is None:
        suggestion = await resolver.suggest(db, merchant_id, item.product_name, KIND_PRODUCT)
        raise NotFoundError(clarifications.product_not_found(
            item.product_name, "record_sale", raw_params, suggestion=suggestion, item_index=index,
        ))

    base_unit = product.base_unit_of_measure
    table = product.conversion_table()
    stated_quantity = item.quantity if item.quantity is not None else 1.0

    try:
        if base_unit:
            quantity_factor = factor_to_base(item.unit, base_unit, table)
        else:
            # No base unit yet: the stated count is all we have
            quantity_factor = 1.0
        quantity_in_base = stated_quantity * quantity_factor

        available = (product.current_stock_in_base_units or 0.0) - decrements.get(product.id, 0.0)
        if quantity_in_base > available + STOCK_EPSILON:
            raise InsufficientStockError(clarifications.insufficient_stock(
                product.name, "record_sale", raw_params,
                requested=quantity_in_base, available=max(available, 0.0),
                base_unit=base_unit, item_index=index,
            ))

        if item.price_per_unit is not None:
            price_unit = item.price_unit or item.unit
            if normalize_unit(price_unit) == normalize_unit(item.unit):
                # Price is per the unit the quantity was stated in
                total = Decimal(str(stated_quantity)) * Decimal(str(item.price_per_unit))
            else:
                price_factor = factor_to_base(price_unit, base_unit, table) if base_unit else 1.0
                per_base = Decimal(str(item.price_per_unit)) / Decimal(str(price_factor))
                total = Decimal(str(quantity_in_base)) * per_base
        elif product.standard_selling_price_per_base_unit is not None:
            total = Decimal(str(quantity_in_base)) * Decimal(str(product.standard_selling_price_per_base_unit))
        else:
            raise ClarificationNeeded(clarifications.selling_price_required(
                product.name, "record_sale", raw_params, base_unit=base_unit, item_index=index,
            ))
    except MissingConversionError as e:
        raise AmbiguousUnitError(clarifications.unit_conversion_required(
            product.name, e.unit_name, e.base_unit, "record_sale", raw_params, item_index=index,
        ))

    total = _money(total)
    per_base = (total / Decimal(str(quantity_in_base))).quantize(Decimal("0.0001")) if quantity_in_base else Decimal("0")
    return StagedSaleItem(
        product=product,
        quantity_in_base=quantity_in_base,
        price_per_base_unit=per_base,
        total=total,
        stated_quantity=stated_quantity,
        stated_unit=item.unit,
    )


async def record_sale(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    params: RecordSaleParams,
    raw_params: Dict[str, Any],
) -> SaleOutcome:
    """
    Validate every line item, then commit the sale or nothing.

    Returns:
        SaleOutcome with the committed sale, or with every clarification
        raised (sale is None, nothing written)
    Raises:
        ValidationError: no usable item at all
        TransactionAbortError: the store rejected the commit
    """
    outcome = SaleOutcome()

    customers = await _resolve_customers(
        db, merchant_id, resolver, params.customer_names, raw_params, outcome.clarifications,
    )

    staged: List[StagedSaleItem] = []
    decrements: Dict[int, float] = {}
    for index, item in enumerate(params.items):
        if not item.product_name and item.quantity is None:
            outcome.skipped_items += 1
            logger.info(f"[SaleEngine] Skipping item #{index}: no product and no quantity")
            continue
        try:
            staged_item = await _stage_item(db, merchant_id, resolver, index, item, raw_params, decrements)
        except ClarificationNeeded as blocked:
            outcome.clarifications.append(blocked.clarification)
            logger.info(f"[SaleEngine] Item #{index} blocked: {blocked.clarification.type.value}")
            continue
        decrements[staged_item.product.id] = decrements.get(staged_item.product.id, 0.0) + staged_item.quantity_in_base
        staged.append(staged_item)

    if outcome.clarifications:
        logger.info(
            f"[SaleEngine] Sale NOT recorded for merchant_id={merchant_id}: "
            f"{len(outcome.clarifications)} clarification(s)"
        )
        return outcome

    if not staged:
        raise ValidationError("There is no item to record in this sale")

    total_amount = _money(params.total_value) if params.total_value is not None else _money(sum(s.total for s in staged))
    amount_paid = _money(params.amount_paid) if params.amount_paid is not None else total_amount

    outcome.sale = commit_sale(
        db, merchant_id, staged, decrements, customers, total_amount, amount_paid, params.notes,
    )
    return outcome


def commit_sale(
    db: Session,
    merchant_id: int,
    staged: List[StagedSaleItem],
    decrements: Dict[int, float],
    customers: List[Customer],
    total_amount: Decimal,
    amount_paid: Decimal,
    notes: Optional[str] = None,
) -> Sale:
    """Write the sale, its stock decrements and customer credit in ONE transaction."""
    try:
        sale = Sale(
            merchant_id=merchant_id,
            total_amount=total_amount,
            amount_paid=amount_paid,
            status=sale_status(total_amount, amount_paid),
            notes=notes,
        )
        for position, item in enumerate(staged):
            sale.items.append(SaleItem(
                product_id=item.product.id,
                product_name=item.product.name,
                quantity=item.quantity_in_base,
                unit=item.product.base_unit_of_measure,
                price_per_unit=item.price_per_base_unit,
                total=item.total,
                position=position,
            ))
        for customer in customers:
            sale.customer_links.append(SaleCustomer(customer_id=customer.id, customer_name=customer.name))
        db.add(sale)

        # Decrement only if the stock is still there
        for product_id, quantity in decrements.items():
            result = db.execute(
                update(Product)
                .where(
                    Product.id == product_id,
                    Product.merchant_id == merchant_id,
                    Product.current_stock_in_base_units >= quantity - STOCK_EPSILON,
                )
                .values(current_stock_in_base_units=Product.current_stock_in_base_units - quantity)
            )
            if result.rowcount != 1:
                raise _StockChanged(f"product_id={product_id}")

        credit_purchase(customers, amount_paid, datetime.now(timezone.utc))
        db.commit()
    except (_StockChanged, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"[SaleEngine] Commit failed for merchant_id={merchant_id}: {type(e).__name__}: {e}", exc_info=True)
        raise TransactionAbortError()

    db.refresh(sale)
    for item in staged:
        db.refresh(item.product)
    logger.info(
        f"[SaleEngine] Sale #{sale.id} recorded: {len(staged)} item(s), "
        f"total={total_amount}, paid={amount_paid}, status={sale.status}"
    )
    return sale


def describe_sale(sale: Sale) -> str:
    """'Sale recorded: 2 bottles Zobo Delight (₦2,000). Total ₦2,000, paid ₦2,000.'"""
    parts = []
    for item in sale.items:
        unit = item.unit
        quantity = format_quantity(item.quantity)
        label = f"{quantity} {pluralize(unit, item.quantity)} {item.product_name}" if unit else f"{quantity} {item.product_name}"
        parts.append(f"{label} ({format_money(item.total)})")

    message = f"Sale recorded: {', '.join(parts)}."
    names = [link.customer_name for link in sale.customer_links]
    if names:
        message += f" Customer: {', '.join(names)}."
    message += f" Total {format_money(sale.total_amount)}, paid {format_money(sale.amount_paid)}."
    if sale.status == SALE_INCOMPLETE:
        balance = Decimal(str(sale.total_amount)) - Decimal(str(sale.amount_paid))
        message += f" Balance {format_money(balance)} outstanding."
    return message


def list_sales(db: Session, merchant_id: int, limit: int = 50) -> List[Sale]:
    return db.query(Sale).filter(Sale.merchant_id == merchant_id).order_by(
        Sale.created_at.desc(), Sale.id.desc(),
    ).limit(limit).all()
