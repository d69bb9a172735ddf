"""JWT issue/verify for account sessions.

HS256 with a single shared JWT_SECRET. ``sub`` is the account_id; ``type``
separates access tokens from refresh tokens and is checked strictly.
No revocation: a token stays valid until ``exp``.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.pl_common.errors import InvalidRefreshTokenError, UnauthenticatedError

_ALGORITHM = settings.JWT_ALGORITHM
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
_REFRESH_EXPIRE = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)


def _encode(account_id: str, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": account_id,
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def create_access_token(account_id: str) -> str:
    """Short-lived token sent as ``Authorization: Bearer``."""
    return _encode(account_id, "access", _ACCESS_EXPIRE)


def create_refresh_token(account_id: str) -> str:
    return _encode(account_id, "refresh", _REFRESH_EXPIRE)


def decode_token(token: str, expected_type: str) -> dict[str, str]:
    """Decode and validate a token of the given type.

    Raises:
        UnauthenticatedError: invalid/expired token, expected_type="access".
        InvalidRefreshTokenError: invalid/expired token, expected_type="refresh".
    """
    payload: dict[str, str] = {}
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        _raise_auth_error(expected_type)

    if payload.get("type") != expected_type or not payload.get("sub"):
        _raise_auth_error(expected_type)

    return payload


def _raise_auth_error(expected_type: str) -> None:
    if expected_type == "refresh":
        raise InvalidRefreshTokenError()
    raise UnauthenticatedError()
