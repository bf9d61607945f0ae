"""Product handlers: add_product, update_product, delete_product, check_stock."""
from typing import Any, Dict

from stockline.agent.commands.base import Command
from stockline.agent.context import CommandContext, HandlerResult
from stockline.schemas.commands import AddProductParams, CheckStockParams, DeleteProductParams, UpdateProductParams
from stockline.services import inventory_service


class AddProductCommand(Command):
    intent = "add_product"

    async def execute(self, context: CommandContext, params: AddProductParams, raw_params: Dict[str, Any]) -> HandlerResult:
        product, created, staged = await inventory_service.add_product(
            context.db, context.merchant_id, context.resolver, params, raw_params,
        )
        message = inventory_service.describe_product_change(product, staged, created=created)
        return HandlerResult.ok(message, self.intent)


class UpdateProductCommand(Command):
    intent = "update_product"

    async def execute(self, context: CommandContext, params: UpdateProductParams, raw_params: Dict[str, Any]) -> HandlerResult:
        product, staged = await inventory_service.update_product(
            context.db, context.merchant_id, context.resolver, params, raw_params,
        )
        return HandlerResult.ok(inventory_service.describe_product_change(product, staged), self.intent)


class DeleteProductCommand(Command):
    intent = "delete_product"

    async def execute(self, context: CommandContext, params: DeleteProductParams, raw_params: Dict[str, Any]) -> HandlerResult:
        deleted, missing = await inventory_service.delete_products(
            context.db, context.merchant_id, context.resolver, params.names, raw_params,
        )
        result = HandlerResult.asking(*missing)
        if deleted:
            result.merge(HandlerResult.ok(f"Deleted {', '.join(deleted)}", self.intent))
        return result


class CheckStockCommand(Command):
    intent = "check_stock"

    async def execute(self, context: CommandContext, params: CheckStockParams, raw_params: Dict[str, Any]) -> HandlerResult:
        db, merchant_id = context.db, context.merchant_id

        if params.filter_type == "low":
            products = inventory_service.low_stock_products(db, merchant_id)
            if not products:
                return HandlerResult.ok("Nothing is running low.", self.intent)
            return HandlerResult.ok(inventory_service.format_stock_report(products, "Low stock"), self.intent)

        if params.query:
            product = await context.resolver.resolve_product(db, merchant_id, params.query)
            if product is None:
                return HandlerResult.failed(f"No product matching '{params.query}'", self.intent)
            return HandlerResult.ok(inventory_service.format_product_line(product), self.intent)

        products = inventory_service.list_products(db, merchant_id)
        return HandlerResult.ok(inventory_service.format_stock_report(products), self.intent)
