"""Domain models for pl_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    account_id: str
    name: str
    email: str
    credential_hash: str
    balance: int             # cents, never negative
    created_at: datetime
    updated_at: datetime


@dataclass
class NewAccount:
    account_id: str
    name: str
    email: str
    credential_hash: str


@dataclass
class AccountUpdate:
    """Partial update. None means "leave unchanged"; balance is not updatable here."""

    name: str | None = None
    credential_hash: str | None = None

    def is_empty(self) -> bool:
        return self.name is None and self.credential_hash is None


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    account_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # cents, positive=income negative=expense
    balance_after: int               # cents, balance snapshot after op
    reference_id: str | None = None  # transfer_id for TRANSFER_* entries
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class NewLedgerEntry:
    account_id: str
    entry_type: str
    amount: int
    balance_after: int
    reference_id: str | None = None
    description: str | None = None
