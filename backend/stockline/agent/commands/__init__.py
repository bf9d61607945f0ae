from stockline.agent.commands.base import Command
from stockline.agent.commands.customers import AddCustomerCommand, DeleteCustomerCommand, GetCustomerCommand
from stockline.agent.commands.products import (
    AddProductCommand,
    CheckStockCommand,
    DeleteProductCommand,
    UpdateProductCommand,
)
from stockline.agent.commands.sales import RecordSaleCommand

__all__ = [
    "Command",
    "AddProductCommand",
    "UpdateProductCommand",
    "DeleteProductCommand",
    "AddCustomerCommand",
    "DeleteCustomerCommand",
    "RecordSaleCommand",
    "GetCustomerCommand",
    "CheckStockCommand",
]
