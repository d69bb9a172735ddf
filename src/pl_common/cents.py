"""Integer arithmetic utilities for cents-based balances.

All amounts and balances use int (cents). No float, no Decimal.
"""

from src.pl_common.errors import InvalidInputError

# BIGINT column upper bound
MAX_AMOUNT_CENTS = 2**63 - 1


def validate_amount(amount: int) -> None:
    """Reject non-integer, zero, negative or out-of-range amounts."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError(f"Amount must be an integer number of cents, got {amount!r}")
    if amount <= 0:
        raise InvalidInputError(f"Amount must be positive, got {amount}")
    if amount > MAX_AMOUNT_CENTS:
        raise InvalidInputError(f"Amount exceeds maximum of {MAX_AMOUNT_CENTS} cents")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
