"""
CLARIFICATION MANAGER

Turns a blocking ambiguity into a durable, resumable request.

Each request carries one prompt (only the immediately blocking issue is asked
about) and `data_needed`: the original intent and params plus the
type-specific fields needed to re-run that command once the merchant answers.
Nothing here decides *when* a clarification resolves; the merchant's answer
arrives from outside (chat reply or API call).
"""
import copy
import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from nlu.amounts import parse_amount
from nlu.intent_schema import CommandIntent
from stockline.core.exceptions import ClarificationClosedError, ValidationError
from stockline.models.clarification import (
    PendingClarification,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_RESOLVED,
)
from stockline.services.formatting import format_money, format_quantity, pluralize

logger = logging.getLogger(__name__)


class ClarificationType(str, Enum):
    BASE_UNIT_DEFINITION_REQUIRED = "BASE_UNIT_DEFINITION_REQUIRED"
    UNIT_CONVERSION_REQUIRED = "UNIT_CONVERSION_REQUIRED"
    SELLING_PRICE_REQUIRED = "SELLING_PRICE_REQUIRED"
    PURCHASE_PRICE_REQUIRED = "PURCHASE_PRICE_REQUIRED"
    STOCK_UPDATE_DEFERRED = "STOCK_UPDATE_DEFERRED"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


# Answers to these are a base unit name
_BASE_UNIT_ANSWERS = {
    ClarificationType.BASE_UNIT_DEFINITION_REQUIRED,
    ClarificationType.STOCK_UPDATE_DEFERRED,
    ClarificationType.PURCHASE_PRICE_REQUIRED,
}

AFFIRMATIVE_ANSWERS = {"yes", "y", "yeah", "yep", "ok", "okay", "sure", "add", "create", "add them", "create them"}


class ClarificationRequest(BaseModel):
    """A question raised by a command that cannot complete on its own."""
    type: ClarificationType
    product_name: Optional[str] = None
    customer_name: Optional[str] = None
    prompt: str
    data_needed: Dict[str, Any] = Field(default_factory=dict)


def _data(intent: str, params: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    data = {"intent": intent, "params": copy.deepcopy(params)}
    data.update({k: v for k, v in extra.items() if v is not None})
    return data


# ==============================================================================
# FACTORIES (one prompt per blocking issue)
# ==============================================================================

def base_unit_required(product_name: str, intent: str, params: Dict[str, Any]) -> ClarificationRequest:
    return ClarificationRequest(
        type=ClarificationType.BASE_UNIT_DEFINITION_REQUIRED,
        product_name=product_name,
        prompt=(
            f"What unit do you count {product_name} in? "
            f"(e.g. piece, bottle, kg)"
        ),
        data_needed=_data(intent, params),
    )


def unit_conversion_required(
    product_name: str,
    unit_name: str,
    target_unit: str,
    intent: str,
    params: Dict[str, Any],
    item_index: Optional[int] = None,
) -> ClarificationRequest:
    return ClarificationRequest(
        type=ClarificationType.UNIT_CONVERSION_REQUIRED,
        product_name=product_name,
        prompt=f"How many {pluralize(target_unit)} are in 1 {unit_name} of {product_name}?",
        data_needed=_data(
            intent, params, unit_name=unit_name, target_unit=target_unit, item_index=item_index,
        ),
    )


def selling_price_required(
    product_name: str,
    intent: str,
    params: Dict[str, Any],
    original_price: Optional[float] = None,
    original_price_unit: Optional[str] = None,
    base_unit: Optional[str] = None,
    item_index: Optional[int] = None,
) -> ClarificationRequest:
    if item_index is not None:
        # Sale line without any price to fall back on: the answer is a price
        unit_text = f" per {base_unit}" if base_unit else ""
        prompt = f"What is the selling price{unit_text} of {product_name}?"
        value_type = "price"
    else:
        price_text = format_money(original_price) if original_price is not None else "the price"
        unit_text = f" per {original_price_unit}" if original_price_unit else ""
        prompt = (
            f"What unit do you count {product_name} in? "
            f"I need it to set the selling price ({price_text}{unit_text})."
        )
        value_type = "base_unit"
    return ClarificationRequest(
        type=ClarificationType.SELLING_PRICE_REQUIRED,
        product_name=product_name,
        prompt=prompt,
        data_needed=_data(
            intent, params,
            value_type=value_type,
            original_price=original_price,
            original_price_unit=original_price_unit,
            item_index=item_index,
        ),
    )


def purchase_price_required(
    product_name: str,
    intent: str,
    params: Dict[str, Any],
    original_price: Optional[float] = None,
    original_price_unit: Optional[str] = None,
) -> ClarificationRequest:
    price_text = format_money(original_price) if original_price is not None else "the cost price"
    return ClarificationRequest(
        type=ClarificationType.PURCHASE_PRICE_REQUIRED,
        product_name=product_name,
        prompt=(
            f"What unit do you count {product_name} in? "
            f"I need it to record the cost price ({price_text})."
        ),
        data_needed=_data(
            intent, params,
            value_type="base_unit",
            original_price=original_price,
            original_price_unit=original_price_unit,
        ),
    )


def stock_update_deferred(
    product_name: str,
    intent: str,
    params: Dict[str, Any],
    original_quantity: Optional[float] = None,
    original_unit: Optional[str] = None,
) -> ClarificationRequest:
    quantity_text = format_quantity(original_quantity)
    if original_unit:
        quantity_text += f" {pluralize(original_unit, original_quantity)}"
    return ClarificationRequest(
        type=ClarificationType.STOCK_UPDATE_DEFERRED,
        product_name=product_name,
        prompt=(
            f"What unit do you count {product_name} in? "
            f"I'll record the {quantity_text} once I know."
        ),
        data_needed=_data(
            intent, params,
            value_type="base_unit",
            original_quantity=original_quantity,
            original_unit=original_unit,
        ),
    )


def product_not_found(
    product_name: str,
    intent: str,
    params: Dict[str, Any],
    suggestion: Optional[str] = None,
    item_index: Optional[int] = None,
) -> ClarificationRequest:
    if product_name:
        prompt = f"I couldn't find a product called '{product_name}'."
    else:
        prompt = "I couldn't tell which product you meant."
    if suggestion:
        prompt += f" Did you mean '{suggestion}'?"
    prompt += " Reply with the product name."
    return ClarificationRequest(
        type=ClarificationType.PRODUCT_NOT_FOUND,
        product_name=product_name,
        prompt=prompt,
        data_needed=_data(
            intent, params, original_name=product_name, suggestion=suggestion, item_index=item_index,
        ),
    )


def customer_not_found(
    customer_name: str,
    intent: str,
    params: Dict[str, Any],
    suggestion: Optional[str] = None,
) -> ClarificationRequest:
    prompt = f"I couldn't find a customer called '{customer_name}'."
    if suggestion:
        prompt += f" Did you mean '{suggestion}'?"
    if intent == "record_sale":
        prompt += " Reply 'yes' to add them as a new customer, or send the correct name."
    else:
        prompt += " Reply with the correct name."
    return ClarificationRequest(
        type=ClarificationType.CUSTOMER_NOT_FOUND,
        customer_name=customer_name,
        prompt=prompt,
        data_needed=_data(intent, params, original_name=customer_name, suggestion=suggestion),
    )


def insufficient_stock(
    product_name: str,
    intent: str,
    params: Dict[str, Any],
    requested: float,
    available: float,
    base_unit: Optional[str],
    item_index: Optional[int] = None,
) -> ClarificationRequest:
    unit = base_unit or "unit"
    return ClarificationRequest(
        type=ClarificationType.INSUFFICIENT_STOCK,
        product_name=product_name,
        prompt=(
            f"Only {format_quantity(available)} {pluralize(unit, available)} of {product_name} in stock, "
            f"but the sale needs {format_quantity(requested)}. How many did you sell?"
        ),
        data_needed=_data(
            intent, params,
            requested_quantity=requested,
            available_quantity=available,
            base_unit=base_unit,
            item_index=item_index,
        ),
    )


# ==============================================================================
# PERSISTENCE
# ==============================================================================

def persist_clarifications(
    db: Session,
    merchant_id: int,
    clarifications: List[ClarificationRequest],
) -> List[PendingClarification]:
    """Write clarifications as pending records.

    A pending record with the same merchant, type and product/customer name is
    updated in place, so asking the same question twice never piles up rows.
    """
    records: List[PendingClarification] = []
    for request in clarifications:
        record = db.query(PendingClarification).filter(
            PendingClarification.merchant_id == merchant_id,
            PendingClarification.type == request.type.value,
            PendingClarification.product_name == request.product_name,
            PendingClarification.customer_name == request.customer_name,
            PendingClarification.status == STATUS_PENDING,
        ).first()

        if record is None:
            record = PendingClarification(
                merchant_id=merchant_id,
                type=request.type.value,
                product_name=request.product_name,
                customer_name=request.customer_name,
                status=STATUS_PENDING,
            )
            db.add(record)
        record.prompt = request.prompt
        record.data_needed = request.data_needed
        record.updated_at = datetime.utcnow()
        records.append(record)

    if records:
        db.commit()
        for record in records:
            db.refresh(record)
        logger.info(f"[Clarifications] {len(records)} pending for merchant_id={merchant_id}")
    return records


def list_pending(db: Session, merchant_id: int) -> List[PendingClarification]:
    return db.query(PendingClarification).filter(
        PendingClarification.merchant_id == merchant_id,
        PendingClarification.status == STATUS_PENDING,
    ).order_by(PendingClarification.created_at.asc(), PendingClarification.id.asc()).all()


def get_clarification(db: Session, merchant_id: int, clarification_id: int) -> Optional[PendingClarification]:
    return db.query(PendingClarification).filter(
        PendingClarification.id == clarification_id,
        PendingClarification.merchant_id == merchant_id,
    ).first()


def _close(db: Session, record: PendingClarification, status: str) -> PendingClarification:
    if record.status != STATUS_PENDING:
        raise ClarificationClosedError(f"This question was already {record.status}.")
    record.status = status
    record.resolved_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    logger.info(f"[Clarifications] #{record.id} ({record.type}) -> {status}")
    return record


def resolve_clarification(db: Session, record: PendingClarification) -> PendingClarification:
    return _close(db, record, STATUS_RESOLVED)


def cancel_clarification(db: Session, record: PendingClarification) -> PendingClarification:
    return _close(db, record, STATUS_CANCELLED)


# ==============================================================================
# RESUME: answer -> command(s) that re-run the original operation
# ==============================================================================

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?\s*[kKmM]?\b")


def _answer_number(answer: str) -> float:
    match = _NUMBER_RE.search(answer or "")
    value = parse_amount(match.group(0)) if match else None
    if value is None or value <= 0:
        raise ValidationError(f"Please reply with a number (got '{answer}').")
    return value


def _answer_unit(answer: str) -> str:
    # Imported here: the unit resolver raises the requests built above
    from stockline.services.units import normalize_unit

    words = re.findall(r"[a-zA-Z]+", answer or "")
    for word in words:
        unit = normalize_unit(word)
        if unit:
            return unit
    raise ValidationError(f"'{answer}' is not a unit I know. Try piece, bottle, kg, liter or pack.")


def _replace_name(names: List[str], old: str, new: str) -> List[str]:
    replaced = [new if n == old else n for n in names]
    if new not in replaced:
        replaced.append(new)
    return replaced


def build_resume_intent(record: PendingClarification, answer: str) -> List[CommandIntent]:
    """Map the merchant's answer back into the original command.

    Returns the commands to run, in order. Usually one; a sale that needs a
    new customer or a new unit factor is preceded by the command that
    supplies it.
    """
    answer = (answer or "").strip()
    if not answer:
        raise ValidationError("Please reply with an answer to the question.")

    data = copy.deepcopy(record.data_needed or {})
    intent = data.get("intent")
    params: Dict[str, Any] = data.get("params") or {}
    if not intent:
        raise ValidationError("This question can no longer be resumed.")

    ctype = ClarificationType(record.type)
    item_index = data.get("item_index")
    item = None
    if item_index is not None and 0 <= item_index < len(params.get("items") or []):
        item = params["items"][item_index]

    if ctype in _BASE_UNIT_ANSWERS or (
        ctype == ClarificationType.SELLING_PRICE_REQUIRED and data.get("value_type") == "base_unit"
    ):
        params["base_unit"] = _answer_unit(answer)
        return [CommandIntent(intent=intent, params=params)]

    if ctype == ClarificationType.UNIT_CONVERSION_REQUIRED:
        conversion = {
            "unit1": data["unit_name"],
            "unit1_quantity": 1,
            "unit2": data["target_unit"],
            "unit2_quantity": _answer_number(answer),
        }
        if intent == "record_sale":
            # Teach the product the new unit first; the router runs updates before sales
            update = CommandIntent(
                intent="update_product",
                params={"name": record.product_name, "conversion": conversion},
            )
            return [update, CommandIntent(intent=intent, params=params)]
        params["conversion"] = conversion
        return [CommandIntent(intent=intent, params=params)]

    if ctype == ClarificationType.SELLING_PRICE_REQUIRED:
        if item is None:
            raise ValidationError("This question can no longer be resumed.")
        item["price_per_unit"] = _answer_number(answer)
        item.pop("price_unit", None)
        return [CommandIntent(intent=intent, params=params)]

    if ctype == ClarificationType.INSUFFICIENT_STOCK:
        if item is None:
            raise ValidationError("This question can no longer be resumed.")
        item["quantity"] = _answer_number(answer)
        # Answer is counted in the base unit shown in the prompt
        item.pop("unit", None)
        return [CommandIntent(intent=intent, params=params)]

    if ctype == ClarificationType.PRODUCT_NOT_FOUND:
        original = data.get("original_name")
        if item is not None:
            item["product_name"] = answer
        elif "names" in params:
            params["names"] = _replace_name(params.get("names") or [], original, answer)
        else:
            params["name"] = answer
        return [CommandIntent(intent=intent, params=params)]

    if ctype == ClarificationType.CUSTOMER_NOT_FOUND:
        original = data.get("original_name")
        if intent == "record_sale":
            if answer.lower().strip(" .!") in AFFIRMATIVE_ANSWERS:
                add = CommandIntent(intent="add_customer", params={"name": original})
                return [add, CommandIntent(intent=intent, params=params)]
            params["customer_names"] = _replace_name(params.get("customer_names") or [], original, answer)
        elif "names" in params:
            params["names"] = _replace_name(params.get("names") or [], original, answer)
        else:
            params["name"] = answer
        return [CommandIntent(intent=intent, params=params)]

    raise ValidationError("This question can no longer be resumed.")
