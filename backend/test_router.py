"""Command router: fixed priority order, per-command isolation, aggregated reply."""
import asyncio

from nlu.intent_schema import CommandIntent
from stockline.agent.commands import AddProductCommand, Command
from stockline.agent.context import CommandContext, HandlerResult
from stockline.agent.registry import CommandRegistry
from stockline.agent.responder import CLARIFICATION_HEADER, DEFAULT_REPLY, generate_consolidated_response
from stockline.agent.router import INTENT_PRIORITY, CommandRouter
from stockline.core.exceptions import GENERIC_FAILURE_MESSAGE
from stockline.models.product import Product
from stockline.services.clarifications import ClarificationType


class ExplodingStockCommand(Command):
    intent = "check_stock"

    async def execute(self, context, params, raw_params):
        raise RuntimeError("disk on fire")


class PingCommand(Command):
    intent = "ping"

    async def execute(self, context, params, raw_params):
        return HandlerResult.ok("pong", self.intent)


def intents(*pairs):
    return [CommandIntent(intent=name, params=params) for name, params in pairs]


def route(router, db, merchant, resolver, commands):
    context = CommandContext(db=db, merchant_id=merchant.id, merchant_name=merchant.name, resolver=resolver)
    return asyncio.run(router.route(context, commands))


# ==============================================================================
# ORDERING
# ==============================================================================

def test_priority_order_is_fixed():
    router = CommandRouter(CommandRegistry([PingCommand()]))
    shuffled = intents(*[(name, {}) for name in reversed(INTENT_PRIORITY)], ("dance", {}), ("ping", {}))

    ordered = [c.intent for c in router.sort_intents(shuffled)]
    assert ordered == INTENT_PRIORITY + ["ping", "dance"]


def test_ties_keep_parse_order():
    router = CommandRouter(CommandRegistry())
    batch = intents(("add_product", {"name": "b"}), ("add_product", {"name": "a"}))
    assert [c.params["name"] for c in router.sort_intents(batch)] == ["b", "a"]


def test_check_stock_sees_product_added_later_in_message(db, merchant, resolver, router):
    result = route(router, db, merchant, resolver, intents(
        ("check_stock", {"query": "Zobo Delight"}),
        ("add_product", {"name": "Zobo Delight", "quantity": 10, "quantity_unit": "bottles"}),
    ))

    assert [r.intent for r in result.responses] == ["add_product", "check_stock"]
    assert all(r.success for r in result.responses)
    assert result.responses[1].message.startswith("Zobo Delight: 10 bottles")


# ==============================================================================
# ISOLATION
# ==============================================================================

def test_unknown_intent_is_reported_and_batch_continues(db, merchant, resolver, router):
    result = route(router, db, merchant, resolver, intents(
        ("dance", {"text": "dance"}),
        ("add_product", {"name": "Rice", "quantity": 5, "unit": "kg"}),
    ))

    assert [r.message for r in result.successes] == ["Added Rice: stock now 5 kg"]
    assert [r.message for r in result.failures] == ["Unknown command: dance"]


def test_invalid_params_fail_only_that_command(db, merchant, resolver, router):
    result = route(router, db, merchant, resolver, intents(
        ("record_sale", {"items": []}),
        ("update_product", {"name": "Rice"}),
        ("add_customer", {"name": "Ada Obi"}),
    ))

    assert [r.message for r in result.successes] == ["Added customer Ada Obi"]
    assert [r.message for r in result.failures] == [
        "Couldn't update product: Specify a quantity, price, or both to update",
        "Couldn't record sale: There is no item to record",
    ]


def test_crash_is_contained(db, merchant, resolver):
    router = CommandRouter(CommandRegistry([AddProductCommand(), ExplodingStockCommand()]))
    result = route(router, db, merchant, resolver, intents(
        ("check_stock", {}),
        ("add_product", {"name": "Rice", "quantity": 5, "unit": "kg"}),
    ))

    assert [r.success for r in result.responses] == [True, False]
    assert result.responses[1].message == GENERIC_FAILURE_MESSAGE
    assert db.query(Product).count() == 1


def test_clarifications_are_collected_not_failed(db, merchant, resolver, router):
    result = route(router, db, merchant, resolver, intents(
        ("add_product", {"name": "Agbada", "quantity": 3}),
        ("add_product", {"name": "Rice", "quantity": 5, "unit": "kg"}),
    ))

    assert result.failures == []
    assert [r.message for r in result.successes] == ["Added Rice: stock now 5 kg"]
    assert [c.type for c in result.clarifications] == [ClarificationType.BASE_UNIT_DEFINITION_REQUIRED]
    assert db.query(Product).filter(Product.name == "Agbada").count() == 0


# ==============================================================================
# AGGREGATED REPLY
# ==============================================================================

def test_consolidated_reply_sections(db, merchant, resolver, router):
    result = route(router, db, merchant, resolver, intents(
        ("dance", {}),
        ("add_product", {"name": "Agbada", "quantity": 3}),
        ("add_product", {"name": "Rice", "quantity": 5, "unit": "kg"}),
    ))

    assert generate_consolidated_response(result) == "\n\n".join([
        "Added Rice: stock now 5 kg",
        "✗ Unknown command: dance",
        f"{CLARIFICATION_HEADER}\n1. What unit do you count Agbada in? (e.g. piece, bottle, kg)",
    ])


def test_empty_result_gets_default_reply():
    assert generate_consolidated_response(HandlerResult()) == DEFAULT_REPLY
