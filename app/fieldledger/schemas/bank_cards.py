from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.fieldledger.schemas.common import BalanceValue, MoneyValue


class BankCardCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_name: str = Field(min_length=1, max_length=255)
    bank_name: str = Field(min_length=1, max_length=255)
    card_number: str | None = Field(default=None, max_length=32)
    initial_balance: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    registration_date: date | None = None
    notes: str | None = None


class BankCardUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    card_name: str | None = Field(default=None, min_length=1, max_length=255)
    bank_name: str | None = Field(default=None, min_length=1, max_length=255)
    card_number: str | None = Field(default=None, max_length=32)
    notes: str | None = None
    is_active: bool | None = None


class BankCardResponse(BaseModel):
    id: str
    card_name: str
    bank_name: str
    card_number: str | None
    initial_balance: BalanceValue
    current_balance: BalanceValue
    registration_date: date
    notes: str | None
    is_active: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


class BankCardListResponse(BaseModel):
    rows: list[BankCardResponse]


class ManualTransactionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transaction_type: Literal["deposit", "withdrawal"]
    amount: MoneyValue = Field(gt=0, examples=["200.00"])
    description: str | None = None
    reference_type: str | None = Field(default=None, max_length=64)
    reference_id: str | None = Field(default=None, max_length=64)


class TransferRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    from_card_id: UUID
    to_card_id: UUID
    amount: MoneyValue = Field(gt=0, examples=["50.00"])
    description: str | None = None


class TransactionResponse(BaseModel):
    id: str
    bank_card_id: str
    transaction_type: str
    amount: BalanceValue
    balance_after: BalanceValue
    description: str | None
    reference_type: str | None
    reference_id: str | None
    created_by: str | None
    created_at: datetime
    report_date: date | None = None
    module_key: str | None = None


class TransactionListResponse(BaseModel):
    rows: list[TransactionResponse]


class TransferResponse(BaseModel):
    outgoing: TransactionResponse
    incoming: TransactionResponse


class RecomputeResponse(BaseModel):
    balances: dict[str, BalanceValue]
