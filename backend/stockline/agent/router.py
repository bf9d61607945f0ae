"""
COMMAND ROUTER

Runs every command of one message, one at a time, in a FIXED priority order
regardless of the order they were parsed in:

    add_product, update_product, delete_product, add_customer,
    delete_customer, record_sale, get_customer, check_stock

so "check stock" in the same message always sees the product just added.
Unrecognized intents run last and are reported as unknown commands.

Each command is isolated: a validation error, business failure or crash in
one becomes a failed response (session rolled back) and the rest still run.
Clarifications are collected, never treated as failures.
"""
import logging
from typing import List

from pydantic import ValidationError as PydanticValidationError

from nlu.intent_schema import CommandIntent
from stockline.agent.context import CommandContext, HandlerResult
from stockline.agent.registry import CommandRegistry
from stockline.core.exceptions import (
    GENERIC_FAILURE_MESSAGE,
    ClarificationNeeded,
    CommandError,
    UnknownIntentError,
)
from stockline.schemas.commands import describe_validation_error, parse_typed_command

logger = logging.getLogger(__name__)

INTENT_PRIORITY = [
    "add_product",
    "update_product",
    "delete_product",
    "add_customer",
    "delete_customer",
    "record_sale",
    "get_customer",
    "check_stock",
]

INTENT_LABELS = {
    "add_product": "add product",
    "update_product": "update product",
    "delete_product": "delete product",
    "add_customer": "add customer",
    "delete_customer": "delete customer",
    "record_sale": "record sale",
    "get_customer": "look up customer",
    "check_stock": "check stock",
}


class CommandRouter:
    def __init__(self, registry: CommandRegistry):
        self.registry = registry

    def _rank(self, intent: str) -> int:
        if intent in INTENT_PRIORITY:
            return INTENT_PRIORITY.index(intent)
        if intent in self.registry:
            return len(INTENT_PRIORITY)
        return len(INTENT_PRIORITY) + 1

    def sort_intents(self, intents: List[CommandIntent]) -> List[CommandIntent]:
        """Priority order; ties keep parse order."""
        return sorted(intents, key=lambda c: self._rank(c.intent))

    async def route(self, context: CommandContext, intents: List[CommandIntent]) -> HandlerResult:
        result = HandlerResult()
        for command_intent in self.sort_intents(intents):
            result.merge(await self.dispatch(context, command_intent))
        logger.info(
            f"[Router] merchant_id={context.merchant_id}: {len(intents)} command(s), "
            f"{len(result.successes)} ok, {len(result.failures)} failed, "
            f"{len(result.clarifications)} clarification(s)"
        )
        return result

    async def dispatch(self, context: CommandContext, command_intent: CommandIntent) -> HandlerResult:
        name = command_intent.intent
        handler = self.registry.get(name)
        if handler is None:
            error = UnknownIntentError(name or "unknown")
            logger.info(f"[Router] {error.message}")
            return HandlerResult.failed(error.message, name)

        try:
            typed = parse_typed_command(name, command_intent.params)
        except PydanticValidationError as e:
            reason = describe_validation_error(e)
            logger.info(f"[Router] Invalid params for {name}: {reason}")
            return HandlerResult.failed(f"Couldn't {INTENT_LABELS.get(name, name)}: {reason}", name)

        stored_params = typed.params.model_dump(mode="json", exclude_none=True)

        try:
            return await handler.execute(context, typed.params, stored_params)
        except ClarificationNeeded as e:
            context.db.rollback()
            logger.info(f"[Router] {name} needs clarification: {e.clarification.type.value}")
            return HandlerResult.asking(e.clarification)
        except CommandError as e:
            context.db.rollback()
            logger.info(f"[Router] {name} failed: {e.message}")
            return HandlerResult.failed(e.message, name)
        except Exception as e:
            context.db.rollback()
            logger.error(f"[Router] {name} crashed: {type(e).__name__}: {e}", exc_info=True)
            return HandlerResult.failed(GENERIC_FAILURE_MESSAGE, name)
