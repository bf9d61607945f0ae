"""Product ledger operations: add, update, delete and stock views.

Every quantity and price goes through the unit resolver first, and a command
is written only when nothing in it needed a clarification.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from stockline.core.config import settings
from stockline.core.exceptions import NotFoundError
from stockline.models.product import Product
from stockline.schemas.commands import AddProductParams, UpdateProductParams
from stockline.services import clarifications
from stockline.services.clarifications import ClarificationRequest
from stockline.services.entity_matcher import KIND_PRODUCT, EntityResolver
from stockline.services.formatting import format_money, format_quantity, pluralize
from stockline.services.units import StagedProductChanges, apply_staged_changes, stage_product_changes

logger = logging.getLogger(__name__)


async def add_product(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    params: AddProductParams,
    raw_params: Dict[str, Any],
) -> Tuple[Product, bool, StagedProductChanges]:
    """Create a product, or add stock/prices to the one it fuzzily matches.

    Returns (product, created, staged changes).
    Raises AmbiguousUnitError when a unit question blocks the command, and
    NotFoundError when the name fits more than one product equally well.
    """
    match = await resolver.resolve(db, merchant_id, params.name, KIND_PRODUCT, settings.PRODUCT_MATCH_THRESHOLD)
    if match is not None and match.ambiguous:
        raise NotFoundError(clarifications.product_not_found(
            params.name, "add_product", raw_params, suggestion=match.name,
        ))
    product = match.entity if match else None
    created = product is None

    if created:
        staged = stage_product_changes(
            params.name, None, {}, params, "add_product", raw_params, is_new=True,
        )
        product = Product(
            merchant_id=merchant_id,
            name=params.name,
            current_stock_in_base_units=0.0,
            reorder_level=0.0,
        )
        apply_staged_changes(product, staged, quantity_mode="add")
        db.add(product)
        logger.info(f"[Inventory] Creating '{product.name}' (base unit: {product.base_unit_of_measure})")
    else:
        staged = stage_product_changes(
            product.name, product.base_unit_of_measure, product.conversion_table(),
            params, "add_product", raw_params, is_new=False,
        )
        apply_staged_changes(product, staged, quantity_mode="add")
        logger.info(f"[Inventory] Adding to existing '{product.name}' (matched from '{params.name}')")

    db.commit()
    db.refresh(product)
    return product, created, staged


async def update_product(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    params: UpdateProductParams,
    raw_params: Dict[str, Any],
) -> Tuple[Product, StagedProductChanges]:
    """Change stock (set/add/remove), prices, units or reorder level of an existing product."""
    product = await resolver.resolve_product(db, merchant_id, params.name)
    if product is None:
        suggestion = await resolver.suggest(db, merchant_id, params.name, KIND_PRODUCT)
        raise NotFoundError(clarifications.product_not_found(
            params.name, "update_product", raw_params, suggestion=suggestion,
        ))

    staged = stage_product_changes(
        product.name, product.base_unit_of_measure, product.conversion_table(),
        params, "update_product", raw_params, is_new=False,
    )
    apply_staged_changes(product, staged, quantity_mode=params.mode)
    db.commit()
    db.refresh(product)
    logger.info(f"[Inventory] Updated '{product.name}' (mode={params.mode})")
    return product, staged


async def delete_products(
    db: Session,
    merchant_id: int,
    resolver: EntityResolver,
    names: List[str],
    raw_params: Dict[str, Any],
) -> Tuple[List[str], List[ClarificationRequest]]:
    """Delete each named product that matches with high confidence.

    Returns (deleted names, clarifications for names that didn't match).
    """
    deleted: List[str] = []
    missing: List[ClarificationRequest] = []
    for name in names:
        result = await resolver.resolve(db, merchant_id, name, KIND_PRODUCT, settings.DELETE_MATCH_THRESHOLD)
        if result is None or result.entity is None:
            suggestion = await resolver.suggest(db, merchant_id, name, KIND_PRODUCT)
            missing.append(clarifications.product_not_found(
                name, "delete_product", raw_params, suggestion=suggestion,
            ))
            continue
        db.delete(result.entity)
        deleted.append(result.entity.name)

    if deleted:
        db.commit()
        logger.info(f"[Inventory] Deleted {deleted} for merchant_id={merchant_id}")
    return deleted, missing


# ==============================================================================
# STOCK VIEWS
# ==============================================================================

def list_products(db: Session, merchant_id: int) -> List[Product]:
    return db.query(Product).filter(Product.merchant_id == merchant_id).order_by(Product.name.asc()).all()


def reorder_threshold(product: Product) -> float:
    if product.reorder_level:
        return product.reorder_level
    return settings.LOW_STOCK_THRESHOLD


def is_low_stock(product: Product) -> bool:
    return (product.current_stock_in_base_units or 0) <= reorder_threshold(product)


def low_stock_products(db: Session, merchant_id: int) -> List[Product]:
    return [p for p in list_products(db, merchant_id) if is_low_stock(p)]


def inventory_value(products: List[Product]) -> Decimal:
    """Stock x selling price; products with no price are left out."""
    total = Decimal("0")
    for product in products:
        if product.standard_selling_price_per_base_unit is None:
            continue
        total += Decimal(str(product.current_stock_in_base_units or 0)) * Decimal(
            str(product.standard_selling_price_per_base_unit)
        )
    return total.quantize(Decimal("0.01"))


def format_stock(product: Product, quantity: Optional[float] = None) -> str:
    quantity = product.current_stock_in_base_units if quantity is None else quantity
    unit = product.base_unit_of_measure
    if not unit:
        return format_quantity(quantity)
    return f"{format_quantity(quantity)} {pluralize(unit, quantity)}"


def format_product_line(product: Product) -> str:
    """'Zobo Delight: 24 bottles @ ₦1,000/bottle (crate = 12)'"""
    line = f"{product.name}: {format_stock(product)}"
    if product.standard_selling_price_per_base_unit is not None:
        line += f" @ {format_money(product.standard_selling_price_per_base_unit)}"
        if product.base_unit_of_measure:
            line += f"/{product.base_unit_of_measure}"
    units = product.conversion_table()
    if units:
        line += " (" + ", ".join(f"{name} = {format_quantity(f)}" for name, f in units.items()) + ")"
    if is_low_stock(product):
        line += " ⚠️ low"
    return line


def format_stock_report(products: List[Product], title: str = "Stock") -> str:
    if not products:
        return f"{title}: no products yet."
    lines = [f"{title} ({len(products)} product{'s' if len(products) != 1 else ''}):"]
    lines.extend(f"• {format_product_line(p)}" for p in products)
    lines.append(f"Inventory value: {format_money(inventory_value(products))}")
    return "\n".join(lines)


def describe_product_change(product: Product, staged: StagedProductChanges, created: bool = False) -> str:
    """One-line confirmation for an add/update."""
    parts = []
    if staged.new_unit is not None:
        unit_name, factor = staged.new_unit
        parts.append(f"1 {unit_name} = {format_quantity(factor)} {pluralize(product.base_unit_of_measure, factor)}")
    if staged.quantity is not None:
        parts.append(f"stock now {format_stock(product)}")
    if staged.price is not None:
        parts.append(f"price {format_money(staged.price)}/{product.base_unit_of_measure}")
    if staged.cost_price is not None:
        parts.append(f"cost {format_money(staged.cost_price)}/{product.base_unit_of_measure}")
    if staged.reorder_level is not None:
        parts.append(f"reorder at {format_stock(product, staged.reorder_level)}")

    verb = "Added" if created else "Updated"
    message = f"{verb} {product.name}"
    if parts:
        message += ": " + ", ".join(parts)
    return message
