"""
Groq API Client - thin wrapper for intent parsing and name matching.

================================================================================
LLM ROLE IS PARSER ONLY
================================================================================

This client turns text into JSON. It never touches the ledger:
- The intent parser validates its output against a strict pydantic schema
- The command router re-validates every command's params before dispatch
- Stock, prices and sales are only changed by the command handlers

Any failure (no key, timeout, rate limit, bad output) returns None and the
caller falls back to deterministic code.
================================================================================
"""

import logging
import time
from typing import Optional

from groq import APIError, APITimeoutError, Groq, RateLimitError

from stockline.core.config import settings

# NEVER log API keys
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Minimal wrapper for the Groq chat completions API.

    - Temperature: 0 (same input, same output)
    - JSON mode: the response is a single JSON object
    - Timeout: fail fast, the keyword fallback is always available
    - Retries: transient timeouts / rate limits only
    """

    TEMPERATURE = 0
    MAX_TOKENS = 1024  # a multi-command message with several sale items
    TIMEOUT_SECONDS = 8

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.model = model or settings.GROQ_MODEL

        if not api_key:
            logger.warning(
                "GROQ_API_KEY not set - LLM parsing is DISABLED, using keyword fallback. "
                "Add your key to backend/.env"
            )
            self.client = None
        else:
            try:
                self.client = Groq(api_key=api_key, timeout=self.TIMEOUT_SECONDS)
                logger.info("Groq client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Groq client: {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def complete_json(self, system_prompt: str, user_content: str, max_retries: int = 2) -> Optional[str]:
        """
        Ask the model for a JSON object.

        Returns:
            Raw JSON string, or None on any error (caller falls back)
        """
        if not self.is_available():
            logger.debug("Groq client not available - skipping LLM call")
            return None

        for attempt in range(max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                    temperature=self.TEMPERATURE,
                    max_tokens=self.MAX_TOKENS,
                    response_format={"type": "json_object"},
                    stream=False,
                )

                if response.choices:
                    content = response.choices[0].message.content
                    logger.debug(f"LLM response received: {len(content or '')} chars (attempt {attempt + 1})")
                    return content
                logger.warning("LLM returned empty response")
                return None

            except APITimeoutError:
                if attempt < max_retries:
                    wait_time = 0.5 * (2 ** attempt)
                    logger.warning(f"Groq timeout, retry {attempt + 1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning(f"Groq API timeout after {max_retries} retries")
                    return None

            except RateLimitError:
                if attempt < max_retries:
                    wait_time = 1.0 * (2 ** attempt)
                    logger.warning(f"Groq rate limit, retry {attempt + 1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning("Groq API rate limit exceeded after retries")
                    return None

            except APIError as e:
                logger.error(f"Groq API error (permanent): {e}")
                return None

        return None


_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Shared client, created on first use."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
