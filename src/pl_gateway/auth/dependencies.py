"""FastAPI dependency: get_current_account.

Usage in any protected router:
    from src.pl_gateway.auth.dependencies import get_current_account

    @router.get("/protected")
    async def protected(account: Account = Depends(get_current_account)):
        ...
"""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from src.pl_account.domain.models import Account
from src.pl_common.errors import AccountNotFoundError, UnauthenticatedError
from src.pl_gateway.auth.jwt_handler import decode_token
from src.pl_storage.facade import Repository
from src.pl_storage.provider import get_repository

# auto_error=False so a missing header goes through UnauthenticatedError like a bad token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_account(
    token: str | None = Depends(oauth2_scheme),
    repo: Repository = Depends(get_repository),
) -> Account:
    """Resolve the Bearer token to its Account (cache first).

    Raises UnauthenticatedError (401) if the token is missing, invalid or
    expired, or if its account no longer exists.
    """
    if not token:
        raise UnauthenticatedError()
    payload = decode_token(token, expected_type="access")
    try:
        return await repo.get_account(payload["sub"])
    except AccountNotFoundError:
        raise UnauthenticatedError() from None
