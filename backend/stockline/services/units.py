"""
UNIT CONVERSION RESOLVER

Every product tracks stock and prices in ONE base unit of measure. Anything the
merchant says in another unit (crates, cartons, dozens...) is converted through
the product's alternative-units table before it touches the ledger.

Flow for an add/update command:
1. Make sure the product has a base unit (stored, given, or inferred)
2. Record a new conversion factor if the command carries one
3. Convert quantity, selling price and cost price into base units
4. Apply the staged changes only if nothing above needed a clarification

Any blocking question aborts the WHOLE add/update: no field of the same
command is written on its own.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from stockline.core.exceptions import AmbiguousUnitError, ValidationError
from stockline.models.product import Product, ProductUnit
from stockline.schemas.commands import ConversionFactor, ProductFieldsParams
from stockline.services import clarifications

logger = logging.getLogger(__name__)


UNIT_VOCABULARY = frozenset({
    "bottle", "piece", "kg", "gram", "liter", "ml", "box", "crate", "carton", "dozen",
    "pack", "bag", "unit", "meter", "cm", "sachet", "tin", "roll", "pair",
})

# Never inferred as a base unit: a merchant sells out of these
BULK_UNITS = frozenset({"crate", "carton", "box", "dozen"})

# Applied after the trailing "s" is stripped
UNIT_ALIASES = {
    "boxe": "box",
    "pc": "piece",
    "pcs": "piece",
    "litre": "liter",
    "kilogram": "kg",
    "kilo": "kg",
    "gramme": "gram",
    "g": "gram",
    "l": "liter",
}


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """
    Canonical unit name, or None if it isn't in the vocabulary.

    Examples:
        "Bottles" -> "bottle"
        "boxes"   -> "box"
        "litres"  -> "liter"
        "jar"     -> None
    """
    if not unit:
        return None
    text = unit.strip().lower()
    if len(text) > 1 and text.endswith("s") and text not in UNIT_VOCABULARY:
        text = text[:-1]
    text = UNIT_ALIASES.get(text, text)
    return text if text in UNIT_VOCABULARY else None


def is_bulk_unit(unit: Optional[str]) -> bool:
    return normalize_unit(unit) in BULK_UNITS


def infer_base_unit(
    base_unit: Optional[str] = None,
    conversion: Optional[ConversionFactor] = None,
    price_unit: Optional[str] = None,
    quantity_unit: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the base unit for a product that doesn't have one yet.

    Order:
    1. An explicit base unit (the merchant answered the question)
    2. The right-hand unit of a conversion ("1 crate = 12 bottles" -> bottle)
    3. The price unit, unless it is a bulk unit
    4. The quantity unit, unless it is a bulk unit
    Returns None when none of these settles it.
    """
    explicit = normalize_unit(base_unit)
    if explicit:
        return explicit

    if conversion is not None:
        unit2 = normalize_unit(conversion.unit2)
        if unit2:
            return unit2

    for candidate in (price_unit, quantity_unit):
        unit = normalize_unit(candidate)
        if unit and unit not in BULK_UNITS:
            return unit

    return None


class MissingConversionError(LookupError):
    """No factor from `unit_name` to the product's base unit."""

    def __init__(self, unit_name: str, base_unit: str):
        super().__init__(f"no conversion from {unit_name} to {base_unit}")
        self.unit_name = unit_name
        self.base_unit = base_unit


def factor_to_base(unit: Optional[str], base_unit: str, table: Dict[str, float]) -> float:
    """Base units in one `unit`.

    No unit counts as the base unit.
    Raises ValidationError for a word outside the vocabulary, and
    MissingConversionError for a known unit with no stored factor.
    """
    if unit is None or not unit.strip():
        return 1.0
    normalized = normalize_unit(unit)
    if normalized is None:
        raise ValidationError(
            f"'{unit.strip()}' is not a unit I know. Try piece, bottle, kg, liter, pack or crate."
        )
    if normalized == base_unit:
        return 1.0
    factor = table.get(normalized)
    if factor is None:
        raise MissingConversionError(normalized, base_unit)
    return factor


def to_base_quantity(quantity: float, unit: Optional[str], base_unit: str, table: Dict[str, float]) -> float:
    return quantity * factor_to_base(unit, base_unit, table)


def from_base_quantity(quantity_in_base: float, unit: Optional[str], base_unit: str, table: Dict[str, float]) -> float:
    """Inverse of to_base_quantity: 24 pieces -> 2 crates when a crate holds 12."""
    return quantity_in_base / factor_to_base(unit, base_unit, table)


def price_per_base_unit(price: float, unit: Optional[str], base_unit: str, table: Dict[str, float]) -> float:
    """6000 per crate of 12 -> 500 per piece."""
    return price / factor_to_base(unit, base_unit, table)


def resolve_conversion(
    conversion: ConversionFactor,
    base_unit: str,
    table: Dict[str, float],
) -> Tuple[str, float]:
    """
    Turn 'q1 unit1 = q2 unit2' into (alternative unit, base units per one of it).

    One side must be the base unit or a unit that already has a factor, e.g.
    with crate = 12 pieces, '1 carton = 2 crates' gives ('carton', 24).

    Raises:
        ValidationError: unknown unit names, or the same unit on both sides
        MissingConversionError: neither side connects to the base unit
    """
    unit1 = normalize_unit(conversion.unit1)
    unit2 = normalize_unit(conversion.unit2)
    for raw, unit in ((conversion.unit1, unit1), (conversion.unit2, unit2)):
        if unit is None:
            raise ValidationError(f"'{raw}' is not a unit I know")
    if unit1 == unit2:
        raise ValidationError(f"A conversion needs two different units (got {unit1} on both sides)")

    q1, q2 = conversion.unit1_quantity, conversion.unit2_quantity

    if unit2 == base_unit:
        return unit1, q2 / q1
    if unit1 == base_unit:
        return unit2, q1 / q2
    if unit2 in table:
        return unit1, (q2 * table[unit2]) / q1
    if unit1 in table:
        return unit2, (q1 * table[unit1]) / q2

    raise MissingConversionError(unit1, base_unit)


def upsert_alternative_unit(product: Product, unit_name: str, factor: float) -> ProductUnit:
    """Set the factor for `unit_name`, replacing an existing entry rather than duplicating it."""
    existing = product.get_alternative_unit(unit_name)
    if existing is not None:
        existing.conversion_factor_to_base = factor
        return existing
    unit = ProductUnit(unit_name=unit_name, conversion_factor_to_base=factor, position=len(product.alternative_units))
    product.alternative_units.append(unit)
    return unit


# ==============================================================================
# STAGING: everything is computed first, written only if nothing blocks
# ==============================================================================

@dataclass
class StagedProductChanges:
    base_unit: Optional[str] = None
    new_unit: Optional[Tuple[str, float]] = None
    quantity: Optional[float] = None  # base units
    price: Optional[float] = None  # per base unit
    cost_price: Optional[float] = None  # per base unit
    reorder_level: Optional[float] = None  # base units


def stage_product_changes(
    product_name: str,
    current_base_unit: Optional[str],
    table: Dict[str, float],
    params: ProductFieldsParams,
    intent: str,
    raw_params: Dict[str, Any],
    is_new: bool,
) -> StagedProductChanges:
    """
    Work out what an add/update command would change, in base units.

    Raises AmbiguousUnitError (carrying the clarification) on the first
    blocking question; nothing is staged in that case.
    """
    staged = StagedProductChanges()
    base_unit = current_base_unit

    if base_unit is None:
        if is_new:
            base_unit = infer_base_unit(params.base_unit, params.conversion, params.price_unit, params.quantity_unit)
        else:
            # Only the merchant's own answer settles the unit of an existing product
            base_unit = infer_base_unit(params.base_unit)
        if base_unit is None:
            if is_new:
                logger.warning(f"[UnitResolver] No base unit for new product '{product_name}'")
                raise AmbiguousUnitError(clarifications.base_unit_required(product_name, intent, raw_params))
            # Existing product still waiting on its base unit: park the field that needs it
            if params.quantity is not None:
                raise AmbiguousUnitError(clarifications.stock_update_deferred(
                    product_name, intent, raw_params, params.quantity, params.quantity_unit,
                ))
            if params.price is not None:
                raise AmbiguousUnitError(clarifications.selling_price_required(
                    product_name, intent, raw_params,
                    original_price=params.price, original_price_unit=params.price_unit,
                ))
            if params.cost_price is not None:
                raise AmbiguousUnitError(clarifications.purchase_price_required(
                    product_name, intent, raw_params, params.cost_price, params.cost_price_unit,
                ))
            if params.conversion is not None or params.reorder_level is not None:
                raise AmbiguousUnitError(clarifications.base_unit_required(product_name, intent, raw_params))
            return staged
        staged.base_unit = base_unit
        logger.info(f"[UnitResolver] Base unit for '{product_name}' set to '{base_unit}'")

    table = dict(table)

    if params.conversion is not None:
        try:
            unit_name, factor = resolve_conversion(params.conversion, base_unit, table)
        except MissingConversionError as e:
            raise AmbiguousUnitError(clarifications.unit_conversion_required(
                product_name, e.unit_name, base_unit, intent, raw_params,
            ))
        staged.new_unit = (unit_name, factor)
        table[unit_name] = factor
        logger.info(f"[UnitResolver] 1 {unit_name} = {factor} {base_unit} for '{product_name}'")

    try:
        if params.quantity is not None:
            staged.quantity = to_base_quantity(params.quantity, params.quantity_unit, base_unit, table)
        if params.price is not None:
            staged.price = price_per_base_unit(params.price, params.price_unit, base_unit, table)
        if params.cost_price is not None:
            staged.cost_price = price_per_base_unit(params.cost_price, params.cost_price_unit, base_unit, table)
        if params.reorder_level is not None:
            staged.reorder_level = params.reorder_level
    except MissingConversionError as e:
        raise AmbiguousUnitError(clarifications.unit_conversion_required(
            product_name, e.unit_name, base_unit, intent, raw_params,
        ))

    return staged


def apply_staged_changes(product: Product, staged: StagedProductChanges, quantity_mode: str = "add") -> None:
    """Write staged changes onto the product (caller commits).

    quantity_mode: "add" adds to stock, "set" replaces it, "remove" subtracts.
    """
    new_stock = None
    if staged.quantity is not None:
        current = product.current_stock_in_base_units or 0.0
        if quantity_mode == "set":
            new_stock = staged.quantity
        elif quantity_mode == "remove":
            if staged.quantity > current:
                unit = staged.base_unit or product.base_unit_of_measure or "units"
                raise ValidationError(
                    f"Can't remove {staged.quantity:g} {unit} of {product.name}: only {current:g} in stock"
                )
            new_stock = current - staged.quantity
        else:
            new_stock = current + staged.quantity

    if staged.base_unit is not None:
        product.base_unit_of_measure = staged.base_unit
    if staged.new_unit is not None:
        upsert_alternative_unit(product, *staged.new_unit)
    if new_stock is not None:
        product.current_stock_in_base_units = new_stock
    if staged.price is not None:
        product.standard_selling_price_per_base_unit = staged.price
    if staged.cost_price is not None:
        product.cost_price_per_base_unit = staged.cost_price
    if staged.reorder_level is not None:
        product.reorder_level = staged.reorder_level
