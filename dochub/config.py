from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # App
    APP_NAME: str = "DocHub"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "production"
    DEBUG: bool = False
    SECRET_KEY: str
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "DocHub"
    JWT_AUDIENCE: str = "DocHub"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Storage
    STORAGE_BACKEND: str = "local"  # local, b2
    UPLOADS_DIR: str = "uploads"
    B2_KEY_ID: str | None = None
    B2_APP_KEY: str | None = None
    B2_BUCKET_NAME: str | None = None
    B2_ENDPOINT_URL: str | None = None
    S3_PRESIGNED_URL_EXPIRY: int = 3600  # 1 hour

    # Security
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    MAX_FILE_SIZE_MB: int = 1024
    ALLOW_UNOWNED_ACCESS: bool = False

    # Folder tree
    MAX_FOLDER_DEPTH: int = 64
    RECENT_FILES_LIMIT: int = 8

    # Seeding
    SEED_DEFAULT_USERS: bool = False
    SEED_ADMIN_PASSWORD: str = "admin123"
    SEED_USER_PASSWORD: str = "user123"

    # Monitoring
    SENTRY_DSN: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
