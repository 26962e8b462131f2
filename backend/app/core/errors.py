"""樂譜庫錯誤分類。"""
from __future__ import annotations

from fastapi import status


class LibraryError(Exception):
    """所有可回報給呼叫端的錯誤基底類別。"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    def to_payload(self) -> dict[str, dict[str, str]]:
        """轉換為 API 錯誤格式。"""

        return {"error": {"code": self.error_code, "message": self.message}}


class ValidationError(LibraryError):
    """輸入資料不合法，呼叫端修正後可重試。"""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class UnauthorizedError(LibraryError):
    """缺少或無效的憑證。"""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"


class NotFoundOrForbiddenError(LibraryError):
    """資源不存在或不屬於呼叫者，兩者刻意不區分。"""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found or access denied")


class StorageError(LibraryError):
    """Blob 儲存服務失敗，對外只回傳通用訊息。"""

    error_code = "STORAGE_ERROR"

    def __init__(self, message: str = "Storage service error") -> None:
        super().__init__(message)


class MetadataError(LibraryError):
    """中繼資料存取失敗。"""

    error_code = "METADATA_ERROR"

    def __init__(self, message: str = "Metadata store error") -> None:
        super().__init__(message)


class DispatchError(LibraryError):
    """背景任務無法送入佇列，轉換紀錄已標記為 failed。"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "DISPATCH_ERROR"

    def __init__(self, message: str = "Conversion could not be started, please try again") -> None:
        super().__init__(message)


class JobFailure(Exception):
    """轉換處理器回報失敗，訊息會記錄在 Conversion 上。"""

    def __init__(self, message: str = "Conversion processing failed") -> None:
        super().__init__(message)
        self.message = message
