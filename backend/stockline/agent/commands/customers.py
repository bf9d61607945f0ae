"""Customer handlers: add_customer, delete_customer, get_customer."""
from typing import Any, Dict

from stockline.agent.commands.base import Command
from stockline.agent.context import CommandContext, CommandResponse, HandlerResult
from stockline.schemas.commands import AddCustomerParams, DeleteCustomerParams, GetCustomerParams
from stockline.services import clarifications, customer_service
from stockline.services.entity_matcher import KIND_CUSTOMER


class AddCustomerCommand(Command):
    intent = "add_customer"

    async def execute(self, context: CommandContext, params: AddCustomerParams, raw_params: Dict[str, Any]) -> HandlerResult:
        customer, created = customer_service.add_customer(context.db, context.merchant_id, params)
        verb = "Added customer" if created else "Updated customer"
        return HandlerResult.ok(f"{verb} {customer.name}", self.intent)


class DeleteCustomerCommand(Command):
    intent = "delete_customer"

    async def execute(self, context: CommandContext, params: DeleteCustomerParams, raw_params: Dict[str, Any]) -> HandlerResult:
        deleted, missing = await customer_service.delete_customers(
            context.db, context.merchant_id, context.resolver, params.names, raw_params,
        )
        result = HandlerResult.asking(*missing)
        if deleted:
            result.merge(HandlerResult.ok(f"Deleted customer {', '.join(deleted)}", self.intent))
        return result


class GetCustomerCommand(Command):
    intent = "get_customer"

    async def execute(self, context: CommandContext, params: GetCustomerParams, raw_params: Dict[str, Any]) -> HandlerResult:
        db, merchant_id, resolver = context.db, context.merchant_id, context.resolver

        if params.view_type == "single" and params.name:
            customer = await customer_service.find_customer(db, merchant_id, resolver, params.name, raw_params)
            return HandlerResult.ok(customer_service.format_customer(customer), self.intent)

        if params.view_type == "search" and params.search_names:
            result = HandlerResult()
            for name in params.search_names:
                customer = await resolver.resolve_customer(db, merchant_id, name)
                if customer is None:
                    suggestion = await resolver.suggest(db, merchant_id, name, KIND_CUSTOMER)
                    result.clarifications.append(clarifications.customer_not_found(
                        name, self.intent, {"view_type": "single", "name": name}, suggestion=suggestion,
                    ))
                    continue
                result.responses.append(CommandResponse(True, customer_service.format_customer(customer), self.intent))
            return result

        customers = customer_service.list_customers(db, merchant_id)
        return HandlerResult.ok(customer_service.format_customer_list(customers), self.intent)
