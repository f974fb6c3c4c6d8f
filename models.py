from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from typing import Optional
from decimal import Decimal, localcontext

AMOUNT_PLACES = 4
CLIENT_ID_MAX = 2**16 - 1
TRANSACTION_ID_MAX = 2**32 - 1


class CommandType(str, Enum):
    withdrawal = "withdrawal"
    deposit = "deposit"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: CommandType = Field(..., description="Command kind")
    client: int = Field(
        ...,
        ge=0,
        le=CLIENT_ID_MAX,
        description="Client identifier"
    )
    tx: int = Field(
        ...,
        ge=0,
        le=TRANSACTION_ID_MAX,
        description="Transaction identifier"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount for deposits and withdrawals, ignored otherwise"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is None:
            return v
        if not v.is_finite():
            raise ValueError('Amount must be a finite number')
        if v.as_tuple().exponent < -AMOUNT_PLACES:
            raise ValueError(f'Amount cannot have more than {AMOUNT_PLACES} decimal places')
        return v

    @property
    def requires_amount(self) -> bool:
        return self.type in (CommandType.deposit, CommandType.withdrawal)


def round_amount(value: Decimal, places: int = AMOUNT_PLACES) -> Decimal:
    """Round half-even to ``places`` decimals without losing integer digits."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return round(value, places)


class AccountSnapshot(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds not on hold")
    held: Decimal = Field(..., description="Funds frozen by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="True once a chargeback occurred")

    @classmethod
    def from_account(cls, client: int, account, places: int = AMOUNT_PLACES) -> "AccountSnapshot":
        return cls(
            client=client,
            available=round_amount(account.available, places),
            held=round_amount(account.held, places),
            total=round_amount(account.total, places),
            locked=account.locked,
        )

    def as_row(self) -> list:
        return [
            str(self.client),
            str(self.available),
            str(self.held),
            str(self.total),
            "true" if self.locked else "false",
        ]
