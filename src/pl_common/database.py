from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from src.pl_common.errors import (
    AppError,
    InvalidInputError,
    PoolUnavailableError,
    StoreError,
)

# SQLSTATE codes a retry can fix: serialization_failure, deadlock_detected
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})
# numeric_value_out_of_range: a balance update would overflow BIGINT
_OUT_OF_RANGE_SQLSTATE = "22003"


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models across modules."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # asyncpg exposes .sqlstate, psycopg exposes .pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_transient_db_error(exc: BaseException) -> bool:
    """True for failures where re-running the whole transaction may succeed."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, DBAPIError):
        return exc.connection_invalidated or _sqlstate(exc) in _TRANSIENT_SQLSTATES
    return False


@asynccontextmanager
async def translate_db_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise SQLAlchemy failures as StoreError, keeping the root cause chained.

    AppError subclasses raised inside the block pass through untouched. A
    numeric overflow (a balance pushed past BIGINT) is the caller's input, so
    it becomes InvalidInputError rather than a store failure.
    """
    try:
        yield
    except AppError:
        raise
    except PoolTimeoutError as exc:
        raise PoolUnavailableError(operation) from exc
    except DBAPIError as exc:
        if _sqlstate(exc) == _OUT_OF_RANGE_SQLSTATE:
            raise InvalidInputError(
                "Amount would take a balance past its maximum"
            ) from exc
        raise StoreError(operation, transient=is_transient_db_error(exc)) from exc
    except SQLAlchemyError as exc:
        raise StoreError(operation, transient=is_transient_db_error(exc)) from exc


class TransactionManager(Protocol):
    def begin(self) -> AbstractAsyncContextManager[AsyncSession]: ...


class SessionTransactionManager:
    """Scoped "begin -> statements -> commit/rollback" over a pooled session.

    The connection goes back to the pool on every exit path; any exception
    inside the block rolls the transaction back before it propagates.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncSession]:
        async with translate_db_errors("transaction"):
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
