"""Intent name -> handler. Built once at startup and passed to the router."""
import logging
from typing import Dict, Iterable, List, Optional

from stockline.agent.commands import (
    AddCustomerCommand,
    AddProductCommand,
    CheckStockCommand,
    Command,
    DeleteCustomerCommand,
    DeleteProductCommand,
    GetCustomerCommand,
    RecordSaleCommand,
    UpdateProductCommand,
)

logger = logging.getLogger(__name__)


class CommandRegistry:
    def __init__(self, commands: Optional[Iterable[Command]] = None):
        self._commands: Dict[str, Command] = {}
        for command in commands or ():
            self.register(command)

    def register(self, command: Command) -> None:
        if not command.intent:
            raise ValueError(f"{type(command).__name__} has no intent name")
        if command.intent in self._commands:
            logger.warning(f"Replacing handler for intent '{command.intent}'")
        self._commands[command.intent] = command

    def get(self, intent: str) -> Optional[Command]:
        return self._commands.get(intent)

    def __contains__(self, intent: str) -> bool:
        return intent in self._commands

    @property
    def intents(self) -> List[str]:
        return list(self._commands)


def build_default_registry() -> CommandRegistry:
    return CommandRegistry([
        AddProductCommand(),
        UpdateProductCommand(),
        DeleteProductCommand(),
        AddCustomerCommand(),
        DeleteCustomerCommand(),
        RecordSaleCommand(),
        GetCustomerCommand(),
        CheckStockCommand(),
    ])
