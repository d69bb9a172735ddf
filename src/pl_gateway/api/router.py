"""Auth API router: signup, login, refresh.

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from fastapi import APIRouter, Depends, Request, status

from config.settings import settings
from src.pl_common.response import ApiResponse, success_response
from src.pl_gateway.user.schemas import (
    AccountInfo,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    SignUpRequest,
    SignUpResponse,
)
from src.pl_gateway.user.service import AuthService
from src.pl_storage.facade import Repository
from src.pl_storage.provider import get_repository

router = APIRouter(prefix="/auth", tags=["auth"])
_service = AuthService()


def _get_request_id(request: Request) -> str:
    """Read request_id injected by RequestLogMiddleware, fallback if absent."""
    return getattr(request.state, "request_id", "req_unknown")


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="Create an account",
)
async def signup(
    request: Request,
    body: SignUpRequest,
    repo: Repository = Depends(get_repository),
) -> ApiResponse:
    account = await _service.signup(repo, body.name, body.email, body.password)

    data = SignUpResponse(
        account_id=account.account_id,
        name=account.name,
        email=account.email,
        created_at=account.created_at.isoformat(),
    )
    resp = success_response(data.model_dump())
    resp.request_id = _get_request_id(request)
    resp.message = "Account created successfully"
    return resp


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Log in with email and password",
)
async def login(
    request: Request,
    body: LoginRequest,
    repo: Repository = Depends(get_repository),
) -> ApiResponse:
    account, access_token, refresh_token = await _service.login(
        repo, body.email, body.password
    )

    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="Bearer",
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        account=AccountInfo(
            account_id=account.account_id,
            name=account.name,
            email=account.email,
        ),
    )
    resp = success_response(data.model_dump())
    resp.request_id = _get_request_id(request)
    resp.message = "Login successful"
    return resp


@router.post(
    "/refresh",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="Refresh access token",
)
async def refresh_token(
    request: Request,
    body: RefreshRequest,
) -> ApiResponse:
    new_access_token = await _service.refresh(body.refresh_token)

    data = RefreshResponse(
        access_token=new_access_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )
    resp = success_response(data.model_dump())
    resp.request_id = _get_request_id(request)
    resp.message = "Token refreshed"
    return resp
