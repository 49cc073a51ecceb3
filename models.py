from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from typing import Optional
from decimal import Decimal, ROUND_HALF_EVEN


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.deposit, TransactionType.withdrawal)


class TransactionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(
        ...,
        ge=0,
        le=0xFFFF,
        description="Client identifier (unsigned 16-bit)"
    )
    tx: int = Field(
        ...,
        ge=0,
        le=0xFFFFFFFF,
        description="Transaction identifier, or the disputed transaction for dispute/resolve/chargeback"
    )
    amount: Optional[Decimal] = Field(
        None,
        max_digits=16,
        decimal_places=4,
        description="Transaction amount, only meaningful for deposit and withdrawal"
    )

    @model_validator(mode='before')
    @classmethod
    def drop_amount_for_dispute_steps(cls, data):
        # Dispute steps always reuse the referenced amount
        if isinstance(data, dict) and data.get('type') in (
            TransactionType.dispute,
            TransactionType.resolve,
            TransactionType.chargeback,
        ):
            data = {**data, 'amount': None}
        return data

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_amount_type_consistency(self):
        if self.type.carries_amount:
            if self.amount is None:
                raise ValueError(f'Amount is required for {self.type.value} transactions')
            if not self.amount.is_finite() or self.amount <= 0:
                raise ValueError('Amount must be a positive number')
        return self


class Account(BaseModel):
    client: int = Field(..., ge=0, le=0xFFFF, description="Client identifier")
    available: Decimal = Field(Decimal("0"), description="Funds available for withdrawal")
    held: Decimal = Field(Decimal("0"), description="Funds held by open disputes")
    total: Decimal = Field(Decimal("0"), description="available + held")
    locked: bool = Field(False, description="Set once a chargeback has been applied")

    def is_consistent(self) -> bool:
        return self.total == self.available + self.held


class AccountRow(BaseModel):
    """One line of the final balances table."""

    client: int
    available: str
    held: str
    total: str
    locked: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountRow":
        quantum = Decimal("0.0001")

        def render(value: Decimal) -> str:
            return str(value.quantize(quantum, rounding=ROUND_HALF_EVEN))

        return cls(
            client=account.client,
            available=render(account.available),
            held=render(account.held),
            total=render(account.total),
            locked="true" if account.locked else "false",
        )


class ProcessingSummary(BaseModel):
    transactions_read: int = Field(0, description="Records taken from the source")
    transactions_applied: int = Field(0, description="Records that changed an account")
    transactions_ignored: int = Field(0, description="Dispute steps skipped for a missing or mismatched reference")
    accounts_count: int = Field(0, description="Number of accounts in system")
    ledger_size: int = Field(0, description="Entries held by the transaction ledger")
    error: Optional[str] = Field(None, description="Fatal error that stopped the run")
