"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Account
  3xxx: Transfer
  9xxx: System

Only ``code`` and ``message`` are ever serialized to the caller. Infrastructure
errors keep the technical root cause on ``__cause__`` (``raise ... from exc``)
so the exception handler can log the whole chain.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Incorrect email or password", 401)


class UnauthenticatedError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "The request source is un-authenticated", 401)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Refresh token is invalid or expired", 401)


# --- 2xxx: Account ---

class AccountNotFoundError(AppError):
    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(2001, f"Account not found: {account_id}", 404)


class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2002,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )


# --- 3xxx: Transfer ---

class TransferNotFoundError(AppError):
    def __init__(self, transfer_id: str) -> None:
        super().__init__(3001, f"Transfer not found: {transfer_id}", 404)


class SelfTransferError(AppError):
    def __init__(self) -> None:
        super().__init__(3002, "Sender and recipient must be different accounts", 422)


class TransferFailedError(AppError):
    def __init__(self, detail: str = "Transfer could not be completed") -> None:
        super().__init__(3003, detail, 500)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StoreError(AppError):
    """A query or commit failed. ``transient`` marks errors worth retrying."""

    def __init__(self, operation: str, transient: bool = False) -> None:
        self.operation = operation
        self.transient = transient
        super().__init__(9003, f"Storage error during {operation}", 500)


class PoolUnavailableError(StoreError):
    def __init__(self, operation: str) -> None:
        AppError.__init__(
            self, 9004, f"Database pool unavailable during {operation}", 503
        )
        self.operation = operation
        self.transient = True


class InvalidInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9005, detail, 400)
