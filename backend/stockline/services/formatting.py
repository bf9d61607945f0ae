"""Display helpers shared by command replies and clarification prompts."""
from decimal import Decimal
from typing import Optional, Union

from stockline.core.config import settings

Number = Union[int, float, Decimal]


def format_quantity(value: Optional[Number]) -> str:
    """12.0 -> '12', 2.5 -> '2.5', None -> '0'."""
    if value is None:
        return "0"
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_money(value: Optional[Number]) -> str:
    """1234.5 -> '₦1,234.50'; whole amounts drop the decimals."""
    amount = Decimal(str(value if value is not None else 0))
    if amount == amount.to_integral_value():
        return f"{settings.CURRENCY_SYMBOL}{int(amount):,}"
    return f"{settings.CURRENCY_SYMBOL}{amount:,.2f}"


def pluralize(unit: str, quantity: Optional[Number] = None) -> str:
    if not unit:
        return ""
    if quantity is not None and float(quantity) == 1:
        return unit
    if unit.endswith(("s", "kg", "ml", "cm")):
        return unit
    if unit.endswith("x"):
        return unit + "es"
    return unit + "s"
