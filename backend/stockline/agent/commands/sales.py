"""record_sale handler."""
from typing import Any, Dict

from stockline.agent.commands.base import Command
from stockline.agent.context import CommandContext, HandlerResult
from stockline.schemas.commands import RecordSaleParams
from stockline.services import sales_service


class RecordSaleCommand(Command):
    intent = "record_sale"

    async def execute(self, context: CommandContext, params: RecordSaleParams, raw_params: Dict[str, Any]) -> HandlerResult:
        outcome = await sales_service.record_sale(
            context.db, context.merchant_id, context.resolver, params, raw_params,
        )
        if not outcome.committed:
            return HandlerResult.asking(*outcome.clarifications)
        return HandlerResult.ok(sales_service.describe_sale(outcome.sale), self.intent)
