"""pl_account REST API: the caller's own account, all endpoints require JWT."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pl_account.application.schemas import (
    DepositRequest,
    UpdateAccountRequest,
    WithdrawRequest,
)
from src.pl_account.application.service import AccountApplicationService
from src.pl_account.domain.models import Account
from src.pl_common.response import ApiResponse, success_response
from src.pl_gateway.auth.dependencies import get_current_account
from src.pl_storage.facade import Repository
from src.pl_storage.provider import get_repository

router = APIRouter(prefix="/accounts", tags=["accounts"])

_service = AccountApplicationService()


@router.get("/me")
async def get_me(
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_account(repo, current.account_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.patch("/me")
async def update_me(
    body: UpdateAccountRequest,
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_account(
        repo, current.account_id, body.name, body.password
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/me/deposit")
async def deposit(
    body: DepositRequest,
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.deposit(
        repo, current.account_id, body.amount_cents, body.description
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/me/withdraw")
async def withdraw(
    body: WithdrawRequest,
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.withdraw(
        repo, current.account_id, body.amount_cents, body.description
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/me/ledger")
async def list_ledger(
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_ledger(repo, current.account_id, cursor, limit)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
