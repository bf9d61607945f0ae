"""
Keyword fallback parser.

Used when the LLM is not configured or its output fails validation. Handles
one command per line (or per ';') in these forms:

    stock | stock low | stock <name>
    customers | customer <name>
    customer add <name> [phone] | customer delete <name>[, <name>]
    delete <name>[, <name>]
    add <name> [<qty> [unit]] [price <p> [per unit]] [1 crate = 12 pieces]
    update <name> [<qty> [unit]] [price <p>] [cost <p>] [reorder <n>]
    sold <qty> [unit] <name> [and <qty> <name>] [to <customer>] [at <p> | for <total>] [paid <p>]
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from nlu.amounts import parse_amount
from nlu.intent_schema import CommandIntent
from stockline.services.units import normalize_unit

logger = logging.getLogger(__name__)

AMOUNT = r"(?:₦|\$|ngn\s*|n(?=\d))?\d[\d,]*(?:\.\d+)?(?:\s*[km]\b)?"
QTY = r"\d+(?:\.\d+)?"
PER_UNIT = r"(?:\s*(?:per|/)\s*|\s+(?:a|each)\s+)(?P<unit>[a-z]+)"

_SPLIT_COMMANDS_RE = re.compile(r"[\n;]+")
_SPLIT_NAMES_RE = re.compile(r"\s*(?:,|\band\b|&)\s*", re.IGNORECASE)

_CONVERSION_RE = re.compile(
    rf"(?P<q1>{QTY})?\s*(?P<u1>[a-z]+)\s*=\s*(?P<q2>{QTY})\s*(?P<u2>[a-z]+)", re.IGNORECASE,
)
_COST_RE = re.compile(
    rf"\bcost(?:\s+price)?\s*(?:of\s+|is\s+)?(?P<amount>{AMOUNT})(?:{PER_UNIT})?",
    re.IGNORECASE,
)
_PRICE_RE = re.compile(
    rf"(?:\bprice\b|\bsell(?:ing)?(?:\s+price)?(?:\s+at)?\b|\bat\b|@)\s*(?:of\s+|is\s+)?(?P<amount>{AMOUNT})"
    rf"(?:{PER_UNIT})?",
    re.IGNORECASE,
)
_REORDER_RE = re.compile(rf"\breorder(?:\s+level)?\s*(?:at\s+|of\s+)?(?P<qty>{QTY})", re.IGNORECASE)

_NAME_THEN_QTY_RE = re.compile(rf"^(?P<name>.+?)\s+(?P<qty>{QTY})\s*(?P<unit>[a-z]+)?$", re.IGNORECASE)
_QTY_THEN_NAME_RE = re.compile(rf"^(?P<qty>{QTY})\s*(?P<rest>.+)$", re.IGNORECASE)

_PAID_RE = re.compile(rf"\b(?:paid|payment|deposit)\s*(?:of\s+)?(?P<amount>{AMOUNT})", re.IGNORECASE)
_CUSTOMER_RE = re.compile(
    r"\bto\s+(?P<names>[a-z][\w .'&,-]*?)(?=\s+(?:for|at|@|paid|payment|deposit)\b|$)", re.IGNORECASE,
)
_TOTAL_RE = re.compile(rf"\bfor\s+(?:a\s+total\s+of\s+)?(?P<amount>{AMOUNT})(?!\s*(?:each|per)\b)", re.IGNORECASE)
_ITEM_PRICE_RE = re.compile(
    rf"(?:\bat\b|@)\s*(?P<amount>{AMOUNT})(?:\s+each\b)?(?:{PER_UNIT})?"
    rf"|(?P<each>{AMOUNT})\s+each\b",
    re.IGNORECASE,
)
_PHONE_RE = re.compile(r"(?P<phone>\+?\d[\d\s-]{6,}\d)\s*$")


def _cut(text: str, match: re.Match) -> str:
    return (text[:match.start()] + " " + text[match.end():]).strip(" ,")


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip(" ,.")


def _split_names(text: str) -> List[str]:
    return [n for n in (_clean(part) for part in _SPLIT_NAMES_RE.split(text)) if n]


def _quantity_and_name(text: str) -> Tuple[Optional[str], Optional[float], Optional[str]]:
    """
    "zobo delight 10 bottles" -> ("zobo delight", 10.0, "bottles")
    "10 bottles of zobo"      -> ("zobo", 10.0, "bottles")
    "zobo delight"            -> ("zobo delight", None, None)
    """
    text = _clean(text)
    if not text:
        return None, None, None

    match = _QTY_THEN_NAME_RE.match(text)
    if match:
        quantity = float(match.group("qty"))
        rest = match.group("rest").split()
        unit = None
        if rest and normalize_unit(rest[0]) and len(rest) > 1:
            unit = rest.pop(0)
        if rest and rest[0].lower() == "of":
            rest.pop(0)
        return _clean(" ".join(rest)) or None, quantity, unit

    match = _NAME_THEN_QTY_RE.match(text)
    if match:
        unit = match.group("unit")
        if unit and not normalize_unit(unit):
            # "add rice 5 big" - not a unit, keep it out of the name too
            unit = None
        return _clean(match.group("name")), float(match.group("qty")), unit

    return text, None, None


def _product_params(text: str, allow_mode: bool = False) -> Dict[str, Any]:
    params: Dict[str, Any] = {}

    match = _CONVERSION_RE.search(text)
    if match:
        params["conversion"] = {
            "unit1": match.group("u1"),
            "unit1_quantity": float(match.group("q1") or 1),
            "unit2": match.group("u2"),
            "unit2_quantity": float(match.group("q2")),
        }
        text = _cut(text, match)

    match = _COST_RE.search(text)
    if match:
        params["cost_price"] = parse_amount(match.group("amount"))
        if match.group("unit"):
            params["cost_price_unit"] = match.group("unit")
        text = _cut(text, match)

    match = _PRICE_RE.search(text)
    if match:
        params["price"] = parse_amount(match.group("amount"))
        if match.group("unit"):
            params["price_unit"] = match.group("unit")
        text = _cut(text, match)

    match = _REORDER_RE.search(text)
    if match:
        params["reorder_level"] = float(match.group("qty"))
        text = _cut(text, match)

    if allow_mode:
        # "update zobo add 5" / "update zobo remove 2"
        mode_match = re.search(rf"\b(?P<mode>add|plus|remove|minus)\s+(?={QTY})", text, re.IGNORECASE)
        if mode_match:
            params["mode"] = "add" if mode_match.group("mode").lower() in ("add", "plus") else "remove"
            text = _cut(text, mode_match)

    name, quantity, unit = _quantity_and_name(text)
    if name:
        params["name"] = name
    if quantity is not None:
        params["quantity"] = quantity
    if unit:
        params["quantity_unit"] = unit
    return params


def _sale_params(text: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {}

    match = _PAID_RE.search(text)
    if match:
        params["amount_paid"] = parse_amount(match.group("amount"))
        text = _cut(text, match)

    match = _CUSTOMER_RE.search(text)
    if match:
        params["customer_names"] = _split_names(match.group("names"))
        text = _cut(text, match)

    match = _TOTAL_RE.search(text)
    if match:
        params["total_value"] = parse_amount(match.group("amount"))
        text = _cut(text, match)

    items = []
    for segment in re.split(r"\s*(?:,|\band\b)\s*(?=\d)", text, flags=re.IGNORECASE):
        item: Dict[str, Any] = {}
        price_match = _ITEM_PRICE_RE.search(segment)
        if price_match:
            amount = price_match.group("amount") or price_match.group("each")
            item["price_per_unit"] = parse_amount(amount)
            if price_match.group("unit"):
                item["price_unit"] = price_match.group("unit")
            segment = _cut(segment, price_match)
        name, quantity, unit = _quantity_and_name(segment)
        if name:
            item["product_name"] = name
        if quantity is not None:
            item["quantity"] = quantity
        if unit:
            item["unit"] = unit
        if item.get("product_name") or item.get("quantity") is not None:
            items.append(item)
    params["items"] = items
    return params


def _parse_line(line: str) -> Optional[CommandIntent]:
    text = _clean(line)
    lower = text.lower()
    if not text:
        return None

    if re.fullmatch(r"(?:check\s+)?stock|inventory", lower):
        return CommandIntent(intent="check_stock", params={})
    if re.fullmatch(r"(?:check\s+)?(?:stock\s+low|low\s+stock)", lower):
        return CommandIntent(intent="check_stock", params={"type": "low"})
    match = re.match(r"^(?:check\s+)?stock\s+(?:of\s+|for\s+)?(?P<query>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="check_stock", params={"query": _clean(match.group("query"))})

    if re.fullmatch(r"(?:list\s+|all\s+|show\s+)?customers", lower):
        return CommandIntent(intent="get_customer", params={"view_type": "all"})
    match = re.match(r"^customer\s+(?:add|new)\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        rest = match.group("rest")
        params: Dict[str, Any] = {}
        phone = _PHONE_RE.search(rest)
        if phone:
            params["phone"] = re.sub(r"[\s-]", "", phone.group("phone"))
            rest = _cut(rest, phone)
        params["name"] = _clean(rest)
        return CommandIntent(intent="add_customer", params=params)
    match = re.match(r"^customer\s+(?:delete|remove)\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="delete_customer", params={"names": _split_names(match.group("rest"))})
    match = re.match(r"^customer\s+(?P<name>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="get_customer", params={"view_type": "single", "name": _clean(match.group("name"))})

    match = re.match(r"^(?:delete|remove)\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="delete_product", params={"names": _split_names(match.group("rest"))})

    match = re.match(r"^add\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="add_product", params=_product_params(match.group("rest")))

    match = re.match(r"^(?:update|set)\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="update_product", params=_product_params(match.group("rest"), allow_mode=True))

    match = re.match(r"^(?:sold|sell|sale)\s+(?P<rest>.+)$", text, re.IGNORECASE)
    if match:
        return CommandIntent(intent="record_sale", params=_sale_params(match.group("rest")))

    # Reported back as an unknown command
    return CommandIntent(intent=lower.split()[0], params={"text": text})


def parse_commands_fallback(message: str) -> List[CommandIntent]:
    """Split a message into commands and parse each by keyword."""
    logger.debug(f"Fallback parsing: {message[:50]}...")
    intents = []
    for line in _SPLIT_COMMANDS_RE.split(message or ""):
        intent = _parse_line(line)
        if intent is not None:
            intents.append(intent)
    return intents
