"""Number parsing for quantities and money as merchants type them."""
import re
from typing import Optional

_CURRENCY_RE = re.compile(r"(₦|\$|\bngn\b|\bnaira\b|^n(?=\d))", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)?)\s*(?P<suffix>k|m)?$", re.IGNORECASE)

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}


def parse_amount(text: Optional[str]) -> Optional[float]:
    """
    "₦9,000" -> 9000.0, "9k" -> 9000.0, "1.5m" -> 1500000.0, "abc" -> None
    """
    if text is None:
        return None
    cleaned = _CURRENCY_RE.sub("", str(text).strip())
    cleaned = cleaned.replace(",", "").replace(" ", "")
    match = _AMOUNT_RE.match(cleaned)
    if not match:
        return None
    value = float(match.group("number"))
    suffix = (match.group("suffix") or "").lower()
    return value * _MULTIPLIERS.get(suffix, 1)
