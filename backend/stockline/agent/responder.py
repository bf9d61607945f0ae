"""Response aggregator: one reply for the whole message."""
from stockline.agent.context import HandlerResult

DEFAULT_REPLY = "I've processed your message."
CLARIFICATION_HEADER = "I need some clarification:"


def generate_consolidated_response(result: HandlerResult) -> str:
    """
    Successes first, then failures (✗), then numbered clarification prompts.

    Example:
        Added Zobo Delight: price ₦1,000/bottle
        ✗ Unknown command: dance
        I need some clarification:
        1. How many bottles are in 1 crate of Coke?
    """
    sections = []

    successes = [r.message for r in result.successes]
    if successes:
        sections.append("\n".join(successes))

    failures = [f"✗ {r.message}" for r in result.failures]
    if failures:
        sections.append("\n".join(failures))

    if result.clarifications:
        prompts = [f"{i}. {c.prompt}" for i, c in enumerate(result.clarifications, start=1)]
        sections.append("\n".join([CLARIFICATION_HEADER] + prompts))

    if not sections:
        return DEFAULT_REPLY
    return "\n\n".join(sections)
