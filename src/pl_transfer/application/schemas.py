"""Pydantic schemas for pl_transfer API."""

from pydantic import BaseModel, Field

from src.pl_common.cents import MAX_AMOUNT_CENTS, cents_to_display
from src.pl_transfer.domain.models import Transfer


class CreateTransferRequest(BaseModel):
    recipient_id: str = Field(..., min_length=1, max_length=64)
    amount_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS, description="Amount to send in cents")
    description: str | None = Field(None, max_length=255)


class TransferResponse(BaseModel):
    transfer_id: str
    sender_id: str
    recipient_id: str
    amount_cents: int
    amount_display: str
    status: str
    description: str | None
    created_at: str

    @classmethod
    def from_domain(cls, transfer: Transfer) -> "TransferResponse":
        return cls(
            transfer_id=transfer.transfer_id,
            sender_id=transfer.sender_id,
            recipient_id=transfer.recipient_id,
            amount_cents=transfer.amount,
            amount_display=cents_to_display(transfer.amount),
            status=transfer.status,
            description=transfer.description,
            created_at=transfer.created_at.isoformat(),
        )


class TransferListResponse(BaseModel):
    items: list[TransferResponse]
    page: int
    page_size: int
    total: int
