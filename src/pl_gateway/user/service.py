"""Auth service: sign-up, login, refresh on top of the Repository facade."""

from src.pl_account.domain.models import Account
from src.pl_common.errors import AccountNotFoundError, InvalidCredentialsError
from src.pl_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.pl_gateway.auth.password import hash_password
from src.pl_storage.facade import Repository


class AuthService:
    """Stateless service; the repository is passed per call."""

    async def signup(
        self, repo: Repository, name: str, email: str, password: str
    ) -> Account:
        return await repo.create_account(name, email, hash_password(password))

    async def login(
        self, repo: Repository, email: str, password: str
    ) -> tuple[Account, str, str]:
        """Authenticate and return (account, access_token, refresh_token).

        Unknown email and wrong password both raise InvalidCredentialsError so
        callers cannot probe which emails are registered.
        """
        try:
            account = await repo.authenticate(email, password)
        except AccountNotFoundError:
            raise InvalidCredentialsError() from None
        return (
            account,
            create_access_token(account.account_id),
            create_refresh_token(account.account_id),
        )

    async def refresh(self, refresh_token: str) -> str:
        """Validate a refresh token and issue a new access token. No rotation."""
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))
