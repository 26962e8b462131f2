"""帳號註冊服務，透過 Supabase Auth admin API 建立使用者。"""
from __future__ import annotations

from typing import Any

from loguru import logger
from supabase import Client

from app.core.errors import ValidationError
from app.core.supabase import get_supabase_client
from app.schemas.account import SignupRequest, UserResource


class AccountService:
    """封裝 Supabase Auth 的帳號建立流程。"""

    def __init__(self, client: Client) -> None:
        self._client = client

    def sign_up(self, payload: SignupRequest) -> UserResource:
        """建立已確認 email 的帳號（尚未設定寄信服務）。"""

        email = (payload.email or "").strip()
        if not email or not payload.password:
            raise ValidationError("Email and password are required")

        name = payload.name or email.split("@")[0]
        try:
            response = self._client.auth.admin.create_user(
                {
                    "email": email,
                    "password": payload.password,
                    "user_metadata": {"name": name},
                    "email_confirm": True,
                }
            )
        except Exception as exc:  # noqa: B902 - 轉換外部例外為 ValidationError
            logger.bind(email=email).warning("註冊失敗: {}", exc)
            raise ValidationError(f"Failed to create user: {getattr(exc, 'message', str(exc))}") from exc

        return self._to_resource(response.user, default_name=name)

    @staticmethod
    def _to_resource(user: Any, *, default_name: str) -> UserResource:
        metadata = getattr(user, "user_metadata", None) or {}
        return UserResource(
            id=str(user.id),
            email=getattr(user, "email", None),
            name=metadata.get("name", default_name),
        )


def get_account_service() -> AccountService:
    """提供 FastAPI 依賴注入的 AccountService。"""

    return AccountService(get_supabase_client())
