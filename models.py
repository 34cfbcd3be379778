from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal


MAX_CLIENT_ID = 2 ** 16 - 1
MAX_TRANSACTION_ID = 2 ** 32 - 1


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class TransactionStatus(str, Enum):
    applied = "applied"
    discarded = "discarded"


class DiscardReason(str, Enum):
    missing_amount = "missing_amount"
    duplicate_transaction = "duplicate_transaction"
    account_not_found = "account_not_found"
    account_locked = "account_locked"
    insufficient_funds = "insufficient_funds"
    unknown_transaction_reference = "unknown_transaction_reference"
    client_mismatch = "client_mismatch"
    no_open_dispute = "no_open_dispute"
    duplicate_dispute = "duplicate_dispute"


class TransactionRecord(BaseModel):
    """A single decoded transaction, as supplied by ingestion."""

    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TRANSACTION_ID, description="Transaction identifier")
    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount, only meaningful for deposits and withdrawals"
    )

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount_is_finite(cls, v):
        if v is not None and not v.is_finite():
            raise ValueError('Amount must be a finite number')
        return v


class Account(BaseModel):
    """Mutable per-client balances. Only the transaction processor writes to it."""

    client: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    locked: bool = False

    def snapshot(self) -> "AccountSnapshot":
        return AccountSnapshot(
            client=self.client,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


class AccountSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for withdrawal")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="Whether a chargeback froze the account")


class TransactionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx: int
    client: int
    type: TransactionType
    status: TransactionStatus
    reason: Optional[DiscardReason] = None

    @property
    def applied(self) -> bool:
        return self.status == TransactionStatus.applied


class ProcessingSummary(BaseModel):
    processed: int = 0
    applied: int = 0
    discarded: int = 0
    discarded_by_reason: Dict[DiscardReason, int] = Field(default_factory=dict)

    def record(self, outcome: TransactionOutcome) -> None:
        self.processed += 1
        if outcome.applied:
            self.applied += 1
        else:
            self.discarded += 1
            self.discarded_by_reason[outcome.reason] = self.discarded_by_reason.get(outcome.reason, 0) + 1


class TransactionBatchRequest(BaseModel):
    transactions: List[TransactionRecord] = Field(
        ...,
        description="Transactions in the order they must be applied"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "transactions": [
                {"type": "deposit", "client": 1, "tx": 1, "amount": "5.0"},
                {"type": "withdrawal", "client": 1, "tx": 2, "amount": "3.0"},
                {"type": "dispute", "client": 1, "tx": 1},
            ]
        }
    })


class LedgerReport(BaseModel):
    accounts: List[AccountSnapshot] = Field(..., description="Final per-client balances")
    summary: ProcessingSummary = Field(..., description="Applied/discarded counts")
    generated_at: datetime = Field(..., description="Report timestamp")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    app_name: str = Field(..., description="Application name")
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(default_factory=datetime.now)
