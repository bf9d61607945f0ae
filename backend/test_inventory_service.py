"""Product ledger: add/update/delete through the unit resolver, stock views."""
import asyncio

import pytest

from stockline.core.exceptions import AmbiguousUnitError, NotFoundError, ValidationError
from stockline.models.product import Product
from stockline.schemas.commands import AddProductParams, UpdateProductParams
from stockline.services import inventory_service
from stockline.services.clarifications import ClarificationType


def add(db, merchant, resolver, **fields):
    params = AddProductParams(**fields)
    return asyncio.run(inventory_service.add_product(
        db, merchant.id, resolver, params, params.model_dump(mode="json", exclude_none=True),
    ))


def update(db, merchant, resolver, **fields):
    params = UpdateProductParams(**fields)
    return asyncio.run(inventory_service.update_product(
        db, merchant.id, resolver, params, params.model_dump(mode="json", exclude_none=True),
    ))


# ==============================================================================
# ADD
# ==============================================================================

def test_price_unit_sets_base_unit(db, merchant, resolver):
    product, created, staged = add(db, merchant, resolver, name="Zobo Delight", price=1000, price_unit="bottle")

    assert created
    assert product.base_unit_of_measure == "bottle"
    assert product.standard_selling_price_per_base_unit == 1000
    assert product.current_stock_in_base_units == 0
    assert inventory_service.describe_product_change(product, staged, created) == \
        "Added Zobo Delight: price ₦1,000/bottle"


def test_new_product_without_unit_is_not_created(db, merchant, resolver):
    with pytest.raises(AmbiguousUnitError) as exc_info:
        add(db, merchant, resolver, name="Agbada", quantity=3)

    assert exc_info.value.clarification.type == ClarificationType.BASE_UNIT_DEFINITION_REQUIRED
    db.rollback()
    assert db.query(Product).count() == 0


def test_add_to_existing_product_matches_fuzzily(db, merchant, resolver, make_product):
    zobo = make_product("Zobo Delight", base_unit="bottle", stock=10)
    product, created, _ = add(db, merchant, resolver, name="zobo", quantity=5, unit="bottles")

    assert not created
    assert product.id == zobo.id
    assert product.current_stock_in_base_units == 15


def test_ambiguous_name_is_not_added_as_new_product(db, merchant, resolver, make_product):
    make_product("Coke 50cl", base_unit="bottle", stock=10)
    make_product("Coke 35cl", base_unit="bottle", stock=10)

    with pytest.raises(NotFoundError) as exc_info:
        add(db, merchant, resolver, name="coke", quantity=5, unit="bottles")

    clarification = exc_info.value.clarification
    assert clarification.type == ClarificationType.PRODUCT_NOT_FOUND
    assert clarification.data_needed["suggestion"] in ("Coke 50cl", "Coke 35cl")
    db.rollback()
    assert sorted(p.name for p in db.query(Product).all()) == ["Coke 35cl", "Coke 50cl"]
    assert [p.current_stock_in_base_units for p in db.query(Product).all()] == [10, 10]


def test_unknown_unit_word_is_rejected(db, merchant, resolver, make_product):
    make_product("Honey", base_unit="bottle", stock=10)

    with pytest.raises(ValidationError) as exc_info:
        add(db, merchant, resolver, name="honey", quantity=2, unit="sacks")

    assert "sacks" in exc_info.value.message
    db.rollback()
    assert db.query(Product).one().current_stock_in_base_units == 10


def test_existing_product_without_base_unit_is_not_guessed(db, merchant, resolver, make_product):
    make_product("Garri", base_unit=None)

    with pytest.raises(AmbiguousUnitError) as exc_info:
        add(db, merchant, resolver, name="Garri", quantity=5, unit="bag")

    assert exc_info.value.clarification.type == ClarificationType.STOCK_UPDATE_DEFERRED
    db.rollback()
    garri = db.query(Product).one()
    assert garri.base_unit_of_measure is None
    assert garri.current_stock_in_base_units == 0


def test_conversion_then_bulk_quantity(db, merchant, resolver, make_product):
    make_product("Zobo Delight", base_unit="bottle", stock=10)

    product, staged = update(
        db, merchant, resolver, name="Zobo Delight",
        conversion={"unit1": "crate", "unit1_quantity": 1, "unit2": "bottles", "unit2_quantity": 12},
    )
    assert product.conversion_table() == {"crate": 12}
    assert inventory_service.describe_product_change(product, staged) == "Updated Zobo Delight: 1 crate = 12 bottles"

    product, _, _ = add(db, merchant, resolver, name="Zobo Delight", quantity=2, unit="crates")
    assert product.current_stock_in_base_units == 34


def test_same_conversion_twice_keeps_one_unit(db, merchant, resolver, make_product):
    make_product("Coke", base_unit="bottle")
    conversion = {"unit1": "crate", "unit2": "bottle", "unit2_quantity": 24}
    update(db, merchant, resolver, name="Coke", conversion=conversion)
    product, _ = update(db, merchant, resolver, name="Coke", conversion=conversion)
    assert len(product.alternative_units) == 1
    assert product.conversion_table() == {"crate": 24}


def test_bulk_price_is_stored_per_base_unit(db, merchant, resolver, make_product):
    make_product("Coke", base_unit="bottle", units={"crate": 24})
    product, _ = update(db, merchant, resolver, name="Coke", price=9600, price_unit="crate", cost_price=7200,
                        cost_price_unit="crate")
    assert product.standard_selling_price_per_base_unit == 400
    assert product.cost_price_per_base_unit == 300


# ==============================================================================
# UPDATE
# ==============================================================================

def test_update_modes(db, merchant, resolver, make_product):
    make_product("Rice", base_unit="kg", stock=20)

    product, _ = update(db, merchant, resolver, name="Rice", quantity=50)
    assert product.current_stock_in_base_units == 50
    product, _ = update(db, merchant, resolver, name="Rice", quantity=5, mode="remove")
    assert product.current_stock_in_base_units == 45
    product, _ = update(db, merchant, resolver, name="Rice", quantity=1, unit="bag", mode="add",
                        conversion={"unit1": "bag", "unit2": "kg", "unit2_quantity": 50})
    assert product.current_stock_in_base_units == 95


def test_remove_below_zero_is_rejected(db, merchant, resolver, make_product):
    make_product("Rice", base_unit="kg", stock=3)
    with pytest.raises(ValidationError):
        update(db, merchant, resolver, name="Rice", quantity=5, mode="remove")
    db.rollback()
    assert db.query(Product).one().current_stock_in_base_units == 3


def test_update_unknown_product_asks(db, merchant, resolver, make_product):
    make_product("Peak Milk", base_unit="tin")
    with pytest.raises(NotFoundError) as exc_info:
        update(db, merchant, resolver, name="Sardines", quantity=3)

    clarification = exc_info.value.clarification
    assert clarification.type == ClarificationType.PRODUCT_NOT_FOUND
    assert clarification.product_name == "Sardines"
    assert clarification.data_needed["intent"] == "update_product"


def test_conversion_clarification_writes_nothing(db, merchant, resolver, make_product):
    make_product("Coke", base_unit="bottle", stock=10)
    with pytest.raises(AmbiguousUnitError) as exc_info:
        update(db, merchant, resolver, name="Coke", quantity=2, unit="cartons", mode="add", price=500)

    assert exc_info.value.clarification.type == ClarificationType.UNIT_CONVERSION_REQUIRED
    db.rollback()
    coke = db.query(Product).one()
    assert coke.current_stock_in_base_units == 10
    assert coke.standard_selling_price_per_base_unit is None


# ==============================================================================
# DELETE
# ==============================================================================

def test_delete_needs_high_confidence(db, merchant, resolver, make_product):
    make_product("Zobo Delight", base_unit="bottle")
    make_product("Peak Milk", base_unit="tin")

    deleted, missing = asyncio.run(inventory_service.delete_products(
        db, merchant.id, resolver, ["peak milk", "zobo"], {"names": ["peak milk", "zobo"]},
    ))

    assert deleted == ["Peak Milk"]
    assert [c.product_name for c in missing] == ["zobo"]
    assert "Did you mean 'Zobo Delight'?" in missing[0].prompt
    assert [p.name for p in inventory_service.list_products(db, merchant.id)] == ["Zobo Delight"]


# ==============================================================================
# VIEWS
# ==============================================================================

def test_low_stock_uses_reorder_level_or_default(db, merchant, make_product):
    make_product("Coke", base_unit="bottle", stock=20, reorder=24)
    make_product("Rice", base_unit="kg", stock=4)
    make_product("Peak Milk", base_unit="tin", stock=30)

    low = [p.name for p in inventory_service.low_stock_products(db, merchant.id)]
    assert low == ["Coke", "Rice"]


def test_stock_report(db, merchant, make_product):
    make_product("Zobo Delight", base_unit="bottle", stock=24, price=1000, units={"crate": 12})
    make_product("Rice", base_unit="kg", stock=2.5, price=1500, reorder=10)

    report = inventory_service.format_stock_report(inventory_service.list_products(db, merchant.id))
    assert report.splitlines() == [
        "Stock (2 products):",
        "• Rice: 2.5 kg @ ₦1,500/kg ⚠️ low",
        "• Zobo Delight: 24 bottles @ ₦1,000/bottle (crate = 12)",
        "Inventory value: ₦27,750",
    ]
