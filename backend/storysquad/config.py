from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "storysquad-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Story Squad")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/storysquad_dev")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_echo: bool = os.getenv("DB_ECHO", "0") == "1"
    # Public base URL used in activation links
    server_url: str = os.getenv("SERVER_URL", "http://localhost:8000")

    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "storysquad-uploads-dev")

    # DS (transcription / scoring) service
    ds_api_url: str = os.getenv("DS_API_URL", "http://ds-api:5000")
    ds_api_token: str = os.getenv("DS_API_TOKEN", "")
    ds_timeout_seconds: float = float(os.getenv("DS_TIMEOUT_SECONDS", "30"))

    # Namespace for uuid5 join / validation / reset codes
    uuid_namespace: str = os.getenv("UUID_NAMESPACE", "6ba7b811-9dad-11d1-80b4-00c04fd430c8")
    reset_code_cooldown_seconds: int = int(os.getenv("RESET_CODE_COOLDOWN_SECONDS", "600"))  # 10 min

settings = Settings()
