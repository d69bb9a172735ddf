"""pl_transfer REST API: send money and read transfer history (JWT required)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pl_account.domain.models import Account
from src.pl_common.response import ApiResponse, success_response
from src.pl_gateway.auth.dependencies import get_current_account
from src.pl_storage.facade import MAX_PAGE_SIZE, Repository
from src.pl_storage.provider import get_repository
from src.pl_transfer.application.schemas import CreateTransferRequest
from src.pl_transfer.application.service import TransferApplicationService

router = APIRouter(prefix="/transfers", tags=["transfers"])

_service = TransferApplicationService()


@router.post("")
async def create_transfer(
    body: CreateTransferRequest,
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_transfer(
        repo, current.account_id, body.recipient_id, body.amount_cents, body.description
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    resp.message = "Transfer completed"
    return resp


@router.get("")
async def list_transfers(
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> ApiResponse:
    data = await _service.list_transfers(repo, current.account_id, page, page_size)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{transfer_id}")
async def get_transfer(
    transfer_id: str,
    current: Annotated[Account, Depends(get_current_account)],
    repo: Annotated[Repository, Depends(get_repository)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_transfer(repo, current.account_id, transfer_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
