"""
Inbound message -> reply.

    text -> intent parser -> router -> clarification persistence -> aggregator

A message with no recognizable command while a clarification is pending is
taken as the answer to the oldest pending question ("cancel" drops it).
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from nlu.intent_parser import parse_commands
from nlu.intent_schema import CommandIntent, ParseResult
from stockline.agent.context import CommandContext
from stockline.agent.responder import generate_consolidated_response
from stockline.agent.router import CommandRouter
from stockline.models.clarification import PendingClarification
from stockline.models.merchant import Merchant
from stockline.services import clarifications as clarification_service
from stockline.services.entity_matcher import EntityResolver

logger = logging.getLogger(__name__)

CANCEL_WORDS = {"cancel", "skip", "never mind", "nevermind", "forget it"}

COMMAND_EXAMPLES = (
    "• add zobo 10 bottles price 1000 per bottle\n"
    "• sold 2 zobo to Ada\n"
    "• stock / stock low\n"
    "• customer add Ada 08031234567"
)

HELP_TEXT = "I couldn't find a command in that. Try:\n" + COMMAND_EXAMPLES


def _context(db: Session, merchant: Merchant, text: str, resolver: Optional[EntityResolver]) -> CommandContext:
    return CommandContext(
        db=db,
        merchant_id=merchant.id,
        merchant_name=merchant.name or "",
        raw_input=text,
        resolver=resolver or EntityResolver(),
    )


async def _run(
    db: Session,
    context: CommandContext,
    router: CommandRouter,
    intents: List[CommandIntent],
) -> str:
    result = await router.route(context, intents)
    if result.clarifications:
        clarification_service.persist_clarifications(db, context.merchant_id, result.clarifications)
    return generate_consolidated_response(result)


async def handle_message(
    db: Session,
    merchant: Merchant,
    text: str,
    router: CommandRouter,
    resolver: Optional[EntityResolver] = None,
    parser: Callable[[str], ParseResult] = parse_commands,
) -> str:
    """Process one inbound message for a merchant and return the reply text."""
    parsed = parser(text)
    if not parsed.success:
        return parsed.error or HELP_TEXT

    context = _context(db, merchant, text, resolver)
    known = [c for c in parsed.intents if c.intent in router.registry]

    if not known:
        pending = clarification_service.list_pending(db, merchant.id)
        if pending:
            return await answer_clarification(db, merchant, pending[0], text, router, resolver)
        if not parsed.intents:
            return HELP_TEXT

    logger.info(f"Message from merchant_id={merchant.id}: {len(parsed.intents)} command(s) via {parsed.source}")
    return await _run(db, context, router, parsed.intents)


async def answer_clarification(
    db: Session,
    merchant: Merchant,
    record: PendingClarification,
    answer: str,
    router: CommandRouter,
    resolver: Optional[EntityResolver] = None,
) -> str:
    """Resolve (or cancel) a pending clarification from a chat reply."""
    if answer.strip().lower().strip(" .!") in CANCEL_WORDS:
        clarification_service.cancel_clarification(db, record)
        return "Okay, I've dropped that."
    return await resume_clarification(db, merchant, record, answer, router, resolver)


async def resume_clarification(
    db: Session,
    merchant: Merchant,
    record: PendingClarification,
    answer: str,
    router: CommandRouter,
    resolver: Optional[EntityResolver] = None,
) -> str:
    """
    Mark the clarification resolved and re-run the original command with the answer.

    Raises:
        ValidationError: the answer doesn't fit the question (nothing changes)
        ClarificationClosedError: the clarification is no longer pending
    """
    intents = clarification_service.build_resume_intent(record, answer)
    clarification_service.resolve_clarification(db, record)
    logger.info(f"Resuming clarification #{record.id} ({record.type}) with {[c.intent for c in intents]}")

    context = _context(db, merchant, answer, resolver)
    return await _run(db, context, router, intents)
