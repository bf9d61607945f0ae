"""Intent Schema - Strict JSON structure for parser output validation.

The LLM is asked to output ONLY this schema. Any deviation triggers the
keyword fallback. Params stay loosely typed here; the command router
validates them against the typed variant for each intent.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class CommandIntent(BaseModel):
    """One parsed sub-command of an inbound message."""
    intent: str
    params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("intent")
    @classmethod
    def normalize_intent(cls, v: str) -> str:
        return (v or "").strip().lower()

    @field_validator("params", mode="before")
    @classmethod
    def default_params(cls, v: Any) -> Any:
        return v if v is not None else {}


class LLMCommandList(BaseModel):
    """Envelope the LLM must return: {"commands": [...]}."""
    commands: List[CommandIntent] = Field(default_factory=list)


class ParseResult(BaseModel):
    """Output contract of the intent parser.

    Fields:
        success: False when the message could not be parsed at all
        intents: Ordered list of parsed commands (may be empty)
        error: Human-readable reason when success is False
        source: "llm" or "fallback" (audit: where did this come from)
    """
    success: bool
    intents: List[CommandIntent] = Field(default_factory=list)
    error: Optional[str] = None
    source: str = "fallback"

    @classmethod
    def failure(cls, error: str, source: str = "fallback") -> "ParseResult":
        return cls(success=False, intents=[], error=error, source=source)
