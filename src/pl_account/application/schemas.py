"""Pydantic schemas and cursor utilities for pl_account API."""

import base64
import binascii
import json

from pydantic import BaseModel, Field, field_validator, model_validator

from src.pl_account.domain.models import Account
from src.pl_common.cents import MAX_AMOUNT_CENTS, cents_to_display
from src.pl_gateway.user.schemas import check_password_rules

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS, description="Amount to deposit in cents")
    description: str | None = Field(None, max_length=255)


class WithdrawRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS, description="Amount to withdraw in cents")
    description: str | None = Field(None, max_length=255)


class UpdateAccountRequest(BaseModel):
    name: str | None = Field(None, max_length=128)
    password: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str | None) -> str | None:
        return v if v is None else check_password_rules(v)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateAccountRequest":
        if self.name is None and self.password is None:
            raise ValueError("Provide name and/or password")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    account_id: str
    name: str
    email: str
    balance_cents: int
    balance_display: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            account_id=account.account_id,
            name=account.name,
            email=account.email,
            balance_cents=account.balance,
            balance_display=cents_to_display(account.balance),
            created_at=account.created_at.isoformat(),
            updated_at=account.updated_at.isoformat(),
        )


class BalanceChangeResponse(BaseModel):
    """Result of a deposit or withdraw."""

    account_id: str
    amount_cents: int
    amount_display: str
    balance_cents: int
    balance_display: str

    @classmethod
    def from_result(cls, account: Account, amount: int) -> "BalanceChangeResponse":
        return cls(
            account_id=account.account_id,
            amount_cents=amount,
            amount_display=cents_to_display(amount),
            balance_cents=account.balance,
            balance_display=cents_to_display(account.balance),
        )


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    balance_after_display: str
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
