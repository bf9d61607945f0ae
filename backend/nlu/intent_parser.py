"""
Intent Parser - message text -> ordered list of CommandIntent.

================================================================================
WHAT THE LLM DOES: splits the message into commands and extracts params
WHAT IT DOES NOT DO: touch the ledger, decide prices, or guess units
================================================================================

1. Reject empty or over-long input (no LLM call)
2. Groq LLM output validated against LLMCommandList
3. ANY failure (no key, timeout, bad JSON, schema mismatch) -> keyword fallback
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from stockline.core.config import settings

from .fallback import parse_commands_fallback
from .groq_client import GroqClient, get_groq_client
from .intent_schema import LLMCommandList, ParseResult
from .prompts import build_messages

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_ERROR = "Please send a message."


def length_exceeded_error(limit: int) -> str:
    return f"Your message is too long. Please keep it under {limit} characters."


def parse_commands(
    message: str,
    client: Optional[GroqClient] = None,
    max_length: Optional[int] = None,
) -> ParseResult:
    """
    Parse a merchant message into commands.

    Args:
        message: Raw inbound text
        client: Groq client (defaults to the shared one)
        max_length: Character ceiling (defaults to MAX_MESSAGE_LENGTH)

    Returns:
        ParseResult; success is False only for empty or over-long input
    """
    limit = settings.MAX_MESSAGE_LENGTH if max_length is None else max_length
    message = (message or "").strip()
    if not message:
        return ParseResult.failure(EMPTY_MESSAGE_ERROR)
    if len(message) > limit:
        logger.info(f"Message rejected: {len(message)} chars > {limit}")
        return ParseResult.failure(length_exceeded_error(limit))

    client = client or get_groq_client()
    if client.is_available():
        parsed = _parse_with_llm(client, message)
        if parsed is not None:
            logger.info(f"LLM parsed {len(parsed.commands)} command(s): {[c.intent for c in parsed.commands]}")
            return ParseResult(success=True, intents=parsed.commands, source="llm")
        logger.debug("LLM output invalid - using fallback")
    else:
        logger.debug("LLM not available - using fallback")

    intents = parse_commands_fallback(message)
    logger.info(f"Fallback parsed {len(intents)} command(s): {[c.intent for c in intents]}")
    return ParseResult(success=True, intents=intents, source="fallback")


def _parse_with_llm(client: GroqClient, message: str) -> Optional[LLMCommandList]:
    system_prompt, user_content = build_messages(message)
    raw = client.complete_json(system_prompt, user_content)
    if not raw:
        return None
    return _parse_and_validate_json(raw)


def _parse_and_validate_json(llm_response: str) -> Optional[LLMCommandList]:
    """Strip markdown fences if any, then validate against the schema."""
    response_clean = llm_response.strip()
    if response_clean.startswith("```"):
        lines = response_clean.split("\n")
        if lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        response_clean = "\n".join(lines).strip()

    try:
        data = json.loads(response_clean)
        return LLMCommandList.model_validate(data)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON from LLM: {e}")
        return None
    except ValidationError as e:
        logger.warning(f"Schema validation failed: {e.error_count()} error(s)")
        return None
