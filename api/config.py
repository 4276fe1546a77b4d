"""API configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://doggywalk:doggywalk@db:5432/doggywalk"
    REDIS_URL: str = "redis://redis:6379/0"
    TELEGRAM_BOT_TOKEN: str = ""
    GEOAPIFY_API_KEY: str = ""

    # Supabase-compatible object storage
    STORAGE_URL: str = "http://storage:5000"
    STORAGE_SERVICE_KEY: str = ""
    DOCUMENTS_BUCKET: str = "identity-documents"
    SELFIES_BUCKET: str = "identity-selfies"

    DASHBOARD_PATH: str = "/dashboard"
    MANAGE_OFFERINGS_PATH: str = "/manage-offerings"
    HTTP_TIMEOUT: float = 15.0
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
