"""API v1 路由設定。"""
from fastapi import APIRouter

from app.api.v1.endpoints import accounts, conversions, health, instruments, library, scores

# api_router 負責收攏 v1 版本的所有路由
api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(accounts.router)
api_router.include_router(instruments.router)
api_router.include_router(scores.router)
api_router.include_router(conversions.router)
api_router.include_router(library.router)
