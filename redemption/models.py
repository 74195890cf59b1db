from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


TRANSACTION_ID_FIELD = "Transaction ID"
STATUS_FIELD = "Status"
AMOUNT_FIELD = "Amount"
CURRENCY_FIELD = "Currency"


class LedgerStatus(str, Enum):
    DONE = "done"
    PENDING = "pending"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str) -> "LedgerStatus":
        value = raw.strip().lower()
        if value == cls.DONE.value:
            return cls.DONE
        if value == cls.PENDING.value:
            return cls.PENDING
        return cls.OTHER


class RedemptionStatus(str, Enum):
    SUCCESS = "success"
    ALREADY_USED = "already_used"
    NOT_FOUND = "not_found"
    LOOKUP_FAILED = "lookup_failed"
    GRANT_FAILED = "grant_failed"


STATUS_MESSAGES = {
    RedemptionStatus.SUCCESS: "Role successfully assigned!",
    RedemptionStatus.ALREADY_USED: "This code has already been used",
    RedemptionStatus.NOT_FOUND: "Transaction ID not found",
    RedemptionStatus.LOOKUP_FAILED: "Could not verify your transaction right now, please try again later",
    RedemptionStatus.GRANT_FAILED: "An error occurred while assigning your role, please contact an administrator",
}


class RedemptionRecord(BaseModel):
    transaction_id: str
    redeemed_by: str
    redeemed_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class LedgerTransaction(BaseModel):
    """Read-only projection of one row of the provider's transaction report."""

    transaction_id: str
    status: LedgerStatus
    amount: Optional[str] = None
    currency: Optional[str] = None
    raw_row: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "LedgerTransaction":
        # Rows without a Status column come from a query already filtered to
        # completed transactions.
        status = LedgerStatus.parse(row[STATUS_FIELD]) if STATUS_FIELD in row else LedgerStatus.DONE
        return cls(
            transaction_id=row.get(TRANSACTION_ID_FIELD, ""),
            status=status,
            amount=row.get(AMOUNT_FIELD) or None,
            currency=row.get(CURRENCY_FIELD) or None,
            raw_row=dict(row),
        )


class RedemptionRequest(BaseModel):
    submitted_id: str
    requester: str


class RedeemRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, description="Transaction ID from the purchase receipt")
    requester_id: str = Field(..., min_length=1, description="User that receives the role")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "transaction_id": "1234567890",
            "requester_id": "301234567890123456",
        }
    })


class RedemptionResponse(BaseModel):
    transaction_id: str
    requester_id: str
    status: RedemptionStatus
    message: str
