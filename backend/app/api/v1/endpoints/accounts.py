"""帳號註冊端點。"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.schemas.account import SignupRequest, SignupResponse
from app.services.account_service import AccountService, get_account_service

router = APIRouter(tags=["accounts"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="建立使用者帳號",
)
async def sign_up(
    payload: SignupRequest,
    service: AccountService = Depends(get_account_service),
) -> SignupResponse:
    """建立帳號並回傳使用者資訊。"""

    user = service.sign_up(payload)
    return SignupResponse(user=user)
