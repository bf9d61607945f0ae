"""
Typed params for every command intent.

The parser hands over loosely typed {intent, params} pairs. Before dispatch the
router validates each pair against a discriminated union keyed by intent, so
every handler receives only its own required, typed fields.

Aliases accept the spellings the parser (LLM or keyword fallback) may emit,
e.g. qty/quantity, customerNames/customer_names.
"""
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from nlu.amounts import parse_amount


def _as_list(v: Any) -> Any:
    """Accept a single string, a comma separated string, or a list."""
    if v is None:
        return []
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return v


def _as_number(v: Any) -> Any:
    if v is None or isinstance(v, (int, float)):
        return v
    if isinstance(v, str):
        if not v.strip():
            return None
        amount = parse_amount(v)
        if amount is None:
            raise ValueError(f"'{v}' is not a number")
        return amount
    return v


class CommandParams(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)


class ConversionFactor(BaseModel):
    """'unit1_quantity unit1 = unit2_quantity unit2', e.g. 1 crate = 12 pieces."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    unit1: str
    unit1_quantity: float = Field(default=1.0, validation_alias=AliasChoices("unit1_quantity", "unit1Quantity"))
    unit2: str
    unit2_quantity: float = Field(validation_alias=AliasChoices("unit2_quantity", "unit2Quantity"))

    @field_validator("unit1_quantity", "unit2_quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Any:
        return _as_number(v)

    @field_validator("unit1_quantity", "unit2_quantity")
    @classmethod
    def positive_quantity(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("conversion quantities must be greater than zero")
        return v


class ProductFieldsParams(CommandParams):
    """Fields shared by add_product and update_product."""
    name: str = Field(validation_alias=AliasChoices("name", "product_name", "productName", "product"))
    quantity: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("quantity", "qty", "initial_quantity", "initialQuantity"),
    )
    quantity_unit: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("quantity_unit", "unit", "initialQuantityUnitOfMeasure"),
    )
    price: Optional[float] = Field(default=None, validation_alias=AliasChoices("price", "selling_price"))
    price_unit: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("price_unit", "priceUnitOfMeasure"),
    )
    cost_price: Optional[float] = Field(default=None, validation_alias=AliasChoices("cost_price", "costPrice"))
    cost_price_unit: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("cost_price_unit", "costPriceUnit"),
    )
    conversion: Optional[ConversionFactor] = Field(
        default=None, validation_alias=AliasChoices("conversion", "conversionFactorProvided"),
    )
    base_unit: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("base_unit", "baseUnitOfMeasure"),
    )
    reorder_level: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("reorder_level", "reorderLevel"),
    )

    @field_validator("quantity", "price", "cost_price", "reorder_level", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _as_number(v)

    @field_validator("quantity", "price", "cost_price", "reorder_level")
    @classmethod
    def non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("product name is required")
        return v


class AddProductParams(ProductFieldsParams):
    pass


class UpdateProductParams(ProductFieldsParams):
    # set: quantity replaces stock; add/remove adjust it
    mode: Literal["set", "add", "remove"] = Field(
        default="set", validation_alias=AliasChoices("mode", "quantity_mode"),
    )

    @model_validator(mode="after")
    def something_to_update(self):
        if (
            self.quantity is None and self.price is None and self.cost_price is None
            and self.conversion is None and self.reorder_level is None and self.base_unit is None
        ):
            raise ValueError("specify a quantity, price, or both to update")
        return self


class DeleteProductParams(CommandParams):
    names: List[str] = Field(validation_alias=AliasChoices("names", "name", "products", "product_names"))

    @field_validator("names", mode="before")
    @classmethod
    def split_names(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("names")
    @classmethod
    def at_least_one(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("specify at least one product to delete")
        return v


class AddCustomerParams(CommandParams):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("phone", mode="before")
    @classmethod
    def phone_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, (int, float)) else v


class DeleteCustomerParams(CommandParams):
    names: List[str] = Field(validation_alias=AliasChoices("names", "name", "customers", "customer_names"))

    @field_validator("names", mode="before")
    @classmethod
    def split_names(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("names")
    @classmethod
    def at_least_one(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("specify at least one customer to delete")
        return v


class SaleItemParams(CommandParams):
    product_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("product_name", "productName", "name", "product"),
    )
    quantity: Optional[float] = Field(default=None, validation_alias=AliasChoices("quantity", "qty"))
    unit: Optional[str] = Field(default=None, validation_alias=AliasChoices("unit", "quantity_unit"))
    price_per_unit: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("price_per_unit", "pricePerUnit", "price"),
    )
    price_unit: Optional[str] = Field(default=None, validation_alias=AliasChoices("price_unit", "priceUnit"))

    @field_validator("quantity", "price_per_unit", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _as_number(v)

    @field_validator("quantity")
    @classmethod
    def positive_quantity(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("quantity sold must be greater than zero")
        return v

    @field_validator("price_per_unit")
    @classmethod
    def non_negative_price(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("price must not be negative")
        return v


class RecordSaleParams(CommandParams):
    customer_names: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("customer_names", "customerNames", "customer_name", "customerName", "customers"),
    )
    items: List[SaleItemParams]
    total_value: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("total_value", "totalValue", "total_amount", "total"),
    )
    amount_paid: Optional[float] = Field(default=None, validation_alias=AliasChoices("amount_paid", "amountPaid"))
    notes: Optional[str] = None

    @field_validator("customer_names", mode="before")
    @classmethod
    def split_customers(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("total_value", "amount_paid", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _as_number(v)

    @field_validator("total_value", "amount_paid")
    @classmethod
    def non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("amounts must not be negative")
        return v

    @field_validator("items")
    @classmethod
    def at_least_one_item(cls, v: List[SaleItemParams]) -> List[SaleItemParams]:
        if not v:
            raise ValueError("there is no item to record")
        return v


class GetCustomerParams(CommandParams):
    view_type: Optional[Literal["all", "single", "search"]] = Field(
        default=None, validation_alias=AliasChoices("view_type", "viewType"),
    )
    name: Optional[str] = None
    search_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("search_names", "searchNames", "searchTerm"),
    )

    @field_validator("search_names", mode="before")
    @classmethod
    def split_names(cls, v: Any) -> Any:
        return _as_list(v)

    @model_validator(mode="after")
    def infer_view_type(self):
        if self.view_type is None:
            if self.search_names:
                self.view_type = "search"
            elif self.name:
                self.view_type = "single"
            else:
                self.view_type = "all"
        return self


class CheckStockParams(CommandParams):
    query: Optional[str] = Field(default=None, validation_alias=AliasChoices("query", "name", "product"))
    filter_type: Optional[Literal["low"]] = Field(
        default=None, validation_alias=AliasChoices("type", "filter_type"),
    )

    @field_validator("filter_type", mode="before")
    @classmethod
    def lower_filter(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v


# ==============================================================================
# TAGGED UNION: intent name -> typed params
# ==============================================================================

class AddProductCommand(BaseModel):
    intent: Literal["add_product"]
    params: AddProductParams


class UpdateProductCommand(BaseModel):
    intent: Literal["update_product"]
    params: UpdateProductParams


class DeleteProductCommand(BaseModel):
    intent: Literal["delete_product"]
    params: DeleteProductParams


class AddCustomerCommand(BaseModel):
    intent: Literal["add_customer"]
    params: AddCustomerParams


class DeleteCustomerCommand(BaseModel):
    intent: Literal["delete_customer"]
    params: DeleteCustomerParams


class RecordSaleCommand(BaseModel):
    intent: Literal["record_sale"]
    params: RecordSaleParams


class GetCustomerCommand(BaseModel):
    intent: Literal["get_customer"]
    params: GetCustomerParams


class CheckStockCommand(BaseModel):
    intent: Literal["check_stock"]
    params: CheckStockParams


TypedCommand = Annotated[
    Union[
        AddProductCommand,
        UpdateProductCommand,
        DeleteProductCommand,
        AddCustomerCommand,
        DeleteCustomerCommand,
        RecordSaleCommand,
        GetCustomerCommand,
        CheckStockCommand,
    ],
    Field(discriminator="intent"),
]

_typed_command_adapter = TypeAdapter(TypedCommand)


def parse_typed_command(intent: str, params: dict):
    """Validate raw params against the variant for `intent`.

    Raises pydantic.ValidationError when params don't fit the variant.
    """
    return _typed_command_adapter.validate_python({"intent": intent, "params": params or {}})


def describe_validation_error(exc) -> str:
    """First pydantic error as a short human-readable sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid command parameters"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("params",)]
    message = first.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    if location and first.get("type") == "missing":
        return f"Missing {location[-1].replace('_', ' ')}"
    return message[0].upper() + message[1:] if message else "Invalid command parameters"
