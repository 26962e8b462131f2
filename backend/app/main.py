"""應用進入點。"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import LibraryError
from app.services.storage_service import get_storage_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """啟動時建立缺少的儲存 bucket，失敗僅記錄不阻擋啟動。"""

    try:
        get_storage_service().ensure_buckets()
    except LibraryError as exc:
        logger.warning("略過 bucket 初始化: {}", exc.message)
    yield


async def handle_library_error(request: Request, exc: LibraryError) -> JSONResponse:
    """將領域錯誤轉換為統一的錯誤格式。"""

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.bind(path=request.url.path).error("{}: {}", exc.error_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTPException 也套用統一錯誤格式（驗證失敗時 detail 已是錯誤物件）。"""

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = {"error": {"code": f"HTTP_{exc.status_code}", "message": str(exc.detail)}}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """請求格式錯誤回傳 400 與第一個欄位錯誤。"""

    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(item) for item in first.get("loc", ()) if item != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"code": "VALIDATION_ERROR", "message": message}},
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """未預期例外只記錄於伺服器端，回應不含內部細節。"""

    logger.bind(path=request.url.path).opt(exception=exc).error("未處理的例外")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
    )


def create_app() -> FastAPI:
    """建立 FastAPI 主應用並綁定路由與中介層。"""

    app = FastAPI(title=settings.project_name, lifespan=lifespan)

    # 設定 CORS 允許前端應用存取 API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LibraryError, handle_library_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(api_router, prefix=settings.api_v1_prefix)
    return app


# app 供 ASGI 伺服器載入執行
app: FastAPI = create_app()
