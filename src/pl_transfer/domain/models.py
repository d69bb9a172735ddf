"""Domain models for pl_transfer: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.pl_account.domain.models import Account


@dataclass
class Transfer:
    transfer_id: str
    sender_id: str
    recipient_id: str
    amount: int              # cents, always > 0
    status: str              # TransferStatus value
    description: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class NewTransfer:
    transfer_id: str
    sender_id: str
    recipient_id: str
    amount: int
    status: str
    description: str | None = None


@dataclass
class TransferOutcome:
    """What a committed transfer produced: the ledger row and both post-commit balances."""

    transfer: Transfer
    sender: Account
    recipient: Account
