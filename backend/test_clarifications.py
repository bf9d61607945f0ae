"""Clarification manager: persistence, lifecycle, and mapping answers back to commands."""
import pytest

from stockline.core.exceptions import ClarificationClosedError, ValidationError
from stockline.models.clarification import STATUS_CANCELLED, STATUS_PENDING, STATUS_RESOLVED, PendingClarification
from stockline.services import clarifications
from stockline.services.clarifications import ClarificationType


def persist_one(db, merchant, request):
    return clarifications.persist_clarifications(db, merchant.id, [request])[0]


def sale_params(**overrides):
    params = {"customer_names": ["Emeka"], "items": [{"product_name": "Coke", "quantity": 2, "unit": "carton"}]}
    params.update(overrides)
    return params


# ==============================================================================
# PERSISTENCE + LIFECYCLE
# ==============================================================================

def test_same_question_is_not_duplicated(db, merchant):
    first = persist_one(db, merchant, clarifications.base_unit_required("Agbada", "add_product", {"name": "Agbada"}))
    second = persist_one(db, merchant, clarifications.base_unit_required(
        "Agbada", "add_product", {"name": "Agbada", "quantity": 3},
    ))

    assert first.id == second.id
    assert db.query(PendingClarification).count() == 1
    assert second.data_needed["params"] == {"name": "Agbada", "quantity": 3}
    assert second.status == STATUS_PENDING


def test_pending_list_is_oldest_first_and_per_merchant(db, merchant):
    persist_one(db, merchant, clarifications.base_unit_required("Agbada", "add_product", {"name": "Agbada"}))
    persist_one(db, merchant, clarifications.customer_not_found("Emeka", "record_sale", sale_params()))

    pending = clarifications.list_pending(db, merchant.id)
    assert [p.type for p in pending] == [
        ClarificationType.BASE_UNIT_DEFINITION_REQUIRED.value,
        ClarificationType.CUSTOMER_NOT_FOUND.value,
    ]
    assert clarifications.list_pending(db, merchant.id + 1) == []
    assert clarifications.get_clarification(db, merchant.id + 1, pending[0].id) is None


def test_resolve_and_cancel_are_final(db, merchant):
    record = persist_one(db, merchant, clarifications.base_unit_required("Agbada", "add_product", {"name": "Agbada"}))

    clarifications.resolve_clarification(db, record)
    assert record.status == STATUS_RESOLVED
    assert record.resolved_at is not None
    with pytest.raises(ClarificationClosedError):
        clarifications.cancel_clarification(db, record)

    other = persist_one(db, merchant, clarifications.base_unit_required("Kaftan", "add_product", {"name": "Kaftan"}))
    clarifications.cancel_clarification(db, other)
    assert other.status == STATUS_CANCELLED
    assert clarifications.list_pending(db, merchant.id) == []


# ==============================================================================
# RESUME
# ==============================================================================

def test_base_unit_answer(db, merchant):
    record = persist_one(db, merchant, clarifications.base_unit_required(
        "Agbada", "add_product", {"name": "Agbada", "quantity": 3},
    ))
    [intent] = clarifications.build_resume_intent(record, "Pieces please")
    assert intent.intent == "add_product"
    assert intent.params == {"name": "Agbada", "quantity": 3, "base_unit": "piece"}


def test_unit_answer_must_be_a_unit(db, merchant):
    record = persist_one(db, merchant, clarifications.stock_update_deferred(
        "Agbada", "update_product", {"name": "Agbada", "quantity": 3}, 3,
    ))
    with pytest.raises(ValidationError):
        clarifications.build_resume_intent(record, "not sure")


def test_conversion_answer_for_product_update(db, merchant):
    record = persist_one(db, merchant, clarifications.unit_conversion_required(
        "Coke", "carton", "bottle", "update_product", {"name": "Coke", "quantity": 2, "quantity_unit": "carton"},
    ))
    [intent] = clarifications.build_resume_intent(record, "48")
    assert intent.params["conversion"] == {"unit1": "carton", "unit1_quantity": 1, "unit2": "bottle", "unit2_quantity": 48}


def test_conversion_answer_for_sale_teaches_the_unit_first(db, merchant):
    record = persist_one(db, merchant, clarifications.unit_conversion_required(
        "Coke", "carton", "bottle", "record_sale", sale_params(), item_index=0,
    ))
    update, sale = clarifications.build_resume_intent(record, "48 bottles")
    assert update.intent == "update_product"
    assert update.params["name"] == "Coke"
    assert update.params["conversion"]["unit2_quantity"] == 48
    assert sale.intent == "record_sale"
    assert sale.params == sale_params()


def test_insufficient_stock_answer_replaces_quantity(db, merchant):
    record = persist_one(db, merchant, clarifications.insufficient_stock(
        "Coke", "record_sale", sale_params(), requested=48, available=30, base_unit="bottle", item_index=0,
    ))
    [intent] = clarifications.build_resume_intent(record, "30")
    assert intent.params["items"][0] == {"product_name": "Coke", "quantity": 30}


def test_sale_price_answer(db, merchant):
    record = persist_one(db, merchant, clarifications.selling_price_required(
        "Coke", "record_sale", sale_params(), base_unit="bottle", item_index=0,
    ))
    [intent] = clarifications.build_resume_intent(record, "₦450")
    assert intent.params["items"][0]["price_per_unit"] == 450


def test_product_not_found_answer_renames(db, merchant):
    record = persist_one(db, merchant, clarifications.product_not_found(
        "zobo", "delete_product", {"names": ["peak milk", "zobo"]},
    ))
    [intent] = clarifications.build_resume_intent(record, "Zobo Delight")
    assert intent.params["names"] == ["peak milk", "Zobo Delight"]


def test_customer_not_found_yes_adds_customer(db, merchant):
    record = persist_one(db, merchant, clarifications.customer_not_found("Emeka", "record_sale", sale_params()))

    add, sale = clarifications.build_resume_intent(record, "Yes")
    assert add.intent == "add_customer"
    assert add.params == {"name": "Emeka"}
    assert sale.params["customer_names"] == ["Emeka"]

    [sale] = clarifications.build_resume_intent(record, "Emeka Nwosu")
    assert sale.params["customer_names"] == ["Emeka Nwosu"]


def test_empty_answer_is_rejected(db, merchant):
    record = persist_one(db, merchant, clarifications.base_unit_required("Agbada", "add_product", {"name": "Agbada"}))
    with pytest.raises(ValidationError):
        clarifications.build_resume_intent(record, "   ")
