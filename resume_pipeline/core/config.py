from pydantic_settings import BaseSettings
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "Resume Pipeline"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Database Settings
    DATABASE_URL: str = "sqlite:///./resume_pipeline.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Blob Storage Settings
    BLOB_STORAGE_PATH: str = "./storage"

    # Model Service Settings (OpenAI-compatible chat completions endpoint)
    MODEL_API_URL: str = "https://api.deepseek.com/v1/chat/completions"
    MODEL_API_KEY: Optional[str] = None
    MODEL_NAME: str = "deepseek-chat"
    MODEL_TIMEOUT_SECONDS: int = 120
    MODEL_MAX_RETRIES: int = 3
    MODEL_TEMPERATURE: float = 0.1
    PARSE_MAX_TOKENS: int = 12000
    METADATA_MAX_TOKENS: int = 4000

    # Extraction Settings
    MIN_INPUT_CHARS: int = 50

    # Artifact Generation Settings
    ARTIFACT_WORKERS: int = 4
    RENDER_TIMEOUT_SECONDS: int = 120

    # Notification Settings
    SSE_HEARTBEAT_SECONDS: int = 30

    # Upload Settings
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5MB

    allowed_origins: List[str] = []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
