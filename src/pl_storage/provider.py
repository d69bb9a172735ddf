"""Process-wide Repository instance, wired from settings.

Routers depend on ``get_repository``; tests swap it out through
``app.dependency_overrides`` or ``reset_repository``.
"""

import logging

from config.settings import settings
from src.pl_account.infrastructure.persistence import AccountRepository
from src.pl_common.database import SessionTransactionManager, async_session_factory
from src.pl_gateway.auth.password import verify_password
from src.pl_storage.caching import ACCOUNTS, TRANSFERS, CacheConfig, Caching
from src.pl_storage.facade import Repository
from src.pl_transfer.domain.engine import TransferEngine
from src.pl_transfer.infrastructure.persistence import TransferRepository

logger = logging.getLogger(__name__)

_repository: Repository | None = None


def build_repository() -> Repository:
    tx_manager = SessionTransactionManager(async_session_factory)
    accounts = AccountRepository()
    transfers = TransferRepository()
    caching = Caching(
        {
            ACCOUNTS: CacheConfig(
                max_capacity=settings.ACCOUNT_CACHE_MAX_CAPACITY,
                time_to_idle=settings.ACCOUNT_CACHE_TTI_SECONDS,
            ),
            TRANSFERS: CacheConfig(
                max_capacity=settings.TRANSFER_CACHE_MAX_CAPACITY,
                time_to_idle=settings.TRANSFER_CACHE_TTI_SECONDS,
            ),
        }
    )
    engine = TransferEngine(
        tx_manager,
        accounts,
        transfers,
        max_retries=settings.TRANSFER_MAX_RETRIES,
        retry_backoff_ms=settings.TRANSFER_RETRY_BACKOFF_MS,
    )
    logger.info(
        "Repository ready (account cache %d, transfer cache %d)",
        settings.ACCOUNT_CACHE_MAX_CAPACITY,
        settings.TRANSFER_CACHE_MAX_CAPACITY,
    )
    return Repository(tx_manager, accounts, transfers, caching, engine, verify_password)


def get_repository() -> Repository:
    """FastAPI dependency: the shared Repository, built on first use."""
    global _repository
    if _repository is None:
        _repository = build_repository()
    return _repository


def reset_repository() -> None:
    global _repository
    _repository = None
