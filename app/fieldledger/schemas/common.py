from decimal import Decimal
from typing import Annotated

from pydantic import Field, PlainSerializer, WithJsonSchema


def _money_str(value: Decimal) -> str:
    return format(Decimal(value).quantize(Decimal("0.01")), "f")


MoneyValue = Annotated[
    Decimal,
    Field(ge=0, max_digits=14, decimal_places=2),
    PlainSerializer(_money_str, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^\d{1,12}(?:\.\d{1,2})?$"}, mode="serialization"),
]

BalanceValue = Annotated[
    Decimal,
    PlainSerializer(_money_str, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": r"^-?\d+(?:\.\d{2})?$"}, mode="serialization"),
]

HoursValue = Annotated[
    Decimal,
    Field(ge=0, le=24, max_digits=6, decimal_places=2),
    PlainSerializer(_money_str, return_type=str, when_used="json"),
]
