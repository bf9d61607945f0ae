"""Base class for intent handlers."""
from abc import ABC, abstractmethod
from typing import Any, Dict

from stockline.agent.context import CommandContext, HandlerResult


class Command(ABC):
    """One handler per intent name.

    `execute` receives the typed params for its intent (already validated by
    the router) plus the same params as a plain dict, which clarifications
    store so the command can be re-run later.
    """

    intent: str = ""

    @abstractmethod
    async def execute(self, context: CommandContext, params: Any, raw_params: Dict[str, Any]) -> HandlerResult:
        ...
