"""核心設定模組。"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """系統設定載入器，統一管理環境變數。"""

    api_v1_prefix: str = "/v1"
    project_name: str = "Score Library API"
    database_url: str = "sqlite:///./scorelib.db"
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_jwks_url: str | None = None
    supabase_jwt_issuer: str | None = None
    supabase_jwt_audience: str = "authenticated"

    # 三個私有 bucket 分別存放樂譜、音訊與 MIDI
    score_bucket: str = "scores"
    audio_bucket: str = "audio"
    midi_bucket: str = "midi"
    signed_url_expires: int = 60 * 60 * 24 * 365
    upload_max_bytes: int = 10 * 1024 * 1024

    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str | None = None
    celery_result_url: str | None = None
    worker_callback_token: str | None = None
    conversion_processor: str = "app.tasks.synthesis:PlaceholderProcessor"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """建立單例設定，避免重複解析設定來源。"""

    return Settings()


# settings 物件提供全域使用的設定值
settings: Settings = get_settings()
