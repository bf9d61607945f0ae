"""Intent parser: input limits, LLM output validation, keyword fallback."""
import json

import pytest

from nlu.amounts import parse_amount
from nlu.fallback import parse_commands_fallback
from nlu.groq_client import GroqClient
from nlu.intent_parser import EMPTY_MESSAGE_ERROR, length_exceeded_error, parse_commands


class FakeGroqClient:
    def __init__(self, content):
        self.content = content

    def is_available(self):
        return True

    def complete_json(self, system_prompt, user_content, max_retries=2):
        return self.content


OFFLINE = GroqClient(api_key="")


def only(message):
    [intent] = parse_commands_fallback(message)
    return intent.intent, intent.params


# ==============================================================================
# INPUT LIMITS
# ==============================================================================

def test_empty_message_is_rejected():
    result = parse_commands("   ", client=OFFLINE)
    assert not result.success
    assert result.error == EMPTY_MESSAGE_ERROR


def test_long_message_is_rejected_before_parsing():
    result = parse_commands("add rice " + "x" * 20, client=FakeGroqClient("{}"), max_length=10)
    assert not result.success
    assert result.error == length_exceeded_error(10)


# ==============================================================================
# LLM PATH
# ==============================================================================

def test_llm_output_is_used_when_valid():
    content = json.dumps({"commands": [
        {"intent": "Add_Product", "params": {"name": "zobo", "price": 1000, "price_unit": "bottle"}},
        {"intent": "check_stock", "params": None},
    ]})
    result = parse_commands("add zobo, price 1000 per bottle. stock?", client=FakeGroqClient(content))

    assert result.success
    assert result.source == "llm"
    assert [c.intent for c in result.intents] == ["add_product", "check_stock"]
    assert result.intents[1].params == {}


def test_llm_output_in_markdown_fence():
    content = "```json\n" + json.dumps({"commands": [{"intent": "check_stock", "params": {"type": "low"}}]}) + "\n```"
    result = parse_commands("what's low?", client=FakeGroqClient(content))
    assert result.source == "llm"
    assert result.intents[0].params == {"type": "low"}


@pytest.mark.parametrize("content", [None, "not json", json.dumps({"commands": [{"params": {}}]})])
def test_bad_llm_output_falls_back(content):
    result = parse_commands("stock low", client=FakeGroqClient(content))
    assert result.success
    assert result.source == "fallback"
    assert [(c.intent, c.params) for c in result.intents] == [("check_stock", {"type": "low"})]


def test_no_api_key_uses_fallback():
    result = parse_commands("stock", client=OFFLINE)
    assert result.source == "fallback"
    assert result.intents[0].intent == "check_stock"


# ==============================================================================
# KEYWORD FALLBACK
# ==============================================================================

def test_fallback_add_product_with_price_unit():
    assert only("add Zobo Delight 10 bottles price 1000 per bottle") == ("add_product", {
        "name": "Zobo Delight",
        "quantity": 10.0,
        "quantity_unit": "bottles",
        "price": 1000.0,
        "price_unit": "bottle",
    })


def test_fallback_conversion():
    assert only("update Zobo Delight 1 crate = 12 bottles") == ("update_product", {
        "name": "Zobo Delight",
        "conversion": {"unit1": "crate", "unit1_quantity": 1.0, "unit2": "bottles", "unit2_quantity": 12.0},
    })


def test_fallback_update_mode():
    assert only("update rice remove 5") == ("update_product", {"mode": "remove", "name": "rice", "quantity": 5.0})


def test_fallback_sale_with_customer_and_payment():
    intent, params = only("sold 2 Zobo Delight and 3 Peak Milk to Ada Obi paid 5k")
    assert intent == "record_sale"
    assert params == {
        "amount_paid": 5000.0,
        "customer_names": ["Ada Obi"],
        "items": [
            {"product_name": "Zobo Delight", "quantity": 2.0},
            {"product_name": "Peak Milk", "quantity": 3.0},
        ],
    }


def test_fallback_sale_with_unit_and_each_price():
    intent, params = only("sold 2 crates coke at 6000 each")
    assert params["items"] == [{"price_per_unit": 6000.0, "product_name": "coke", "quantity": 2.0, "unit": "crates"}]


def test_fallback_sale_total():
    intent, params = only("sold 3 shoes for 15,000")
    assert params["total_value"] == 15000
    assert params["items"] == [{"product_name": "shoes", "quantity": 3.0}]


@pytest.mark.parametrize("message,expected", [
    ("stock", ("check_stock", {})),
    ("stock low", ("check_stock", {"type": "low"})),
    ("stock of rice", ("check_stock", {"query": "rice"})),
    ("customers", ("get_customer", {"view_type": "all"})),
    ("customer Ada Obi", ("get_customer", {"view_type": "single", "name": "Ada Obi"})),
    ("customer add Tunde 0803 123 4567", ("add_customer", {"phone": "08031234567", "name": "Tunde"})),
    ("customer delete Tunde and Bola", ("delete_customer", {"names": ["Tunde", "Bola"]})),
    ("delete zobo, peak milk", ("delete_product", {"names": ["zobo", "peak milk"]})),
    ("dance all night", ("dance", {"text": "dance all night"})),
])
def test_fallback_keywords(message, expected):
    assert only(message) == expected


def test_fallback_splits_lines_and_semicolons():
    intents = parse_commands_fallback("add rice 5 kg\nstock low; customers")
    assert [c.intent for c in intents] == ["add_product", "check_stock", "get_customer"]


# ==============================================================================
# AMOUNTS
# ==============================================================================

@pytest.mark.parametrize("text,expected", [
    ("₦9,000", 9000.0),
    ("9k", 9000.0),
    ("1.5m", 1500000.0),
    ("N2500", 2500.0),
    ("300 naira", 300.0),
    ("abc", None),
    (None, None),
])
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected
