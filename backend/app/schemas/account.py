"""帳號註冊相關 Schema。"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class SignupRequest(BaseModel):
    """註冊請求，email 與 password 於服務層檢查。"""

    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class UserResource(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class SignupResponse(BaseModel):
    user: UserResource
    message: str = "Account created successfully"
