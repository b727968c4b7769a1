from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    KINTONE_BASE_URL: str = "https://example.cybozu.com"
    KINTONE_TIMEOUT: float = 30.0

    KINTONE_PRODUCTS_APP_ID: str = ""
    KINTONE_PRODUCTS_TOKEN: str = ""
    KINTONE_DEALERS_APP_ID: str = ""
    KINTONE_DEALERS_TOKEN: str = ""
    KINTONE_ORDERS_APP_ID: str = ""
    KINTONE_ORDERS_TOKEN: str = ""

    APPROVAL_ASSIGNEE: str = "Administrator"

    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # 8 hours
    PASSWORD_EXPIRY_DAYS: int = 90
    MIN_PASSWORD_LENGTH: int = 6

    RATE_LIMIT: int = 30
    RATE_LIMIT_WINDOW: int = 60

    IDEMPOTENCY_TTL: int = 86400  # 24 hours
    CATALOG_CACHE_TTL: int = 60

    PUSH_URL: Optional[str] = None
    PUSH_SERVER_KEY: str = ""
    PUSH_TIMEOUT: int = 10
    PUSH_RETRIES: int = 3

    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_BACKEND: str = "redis://localhost:6379/2"

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    API_TITLE: str = "Dealer Ordering Portal API"
    API_DESCRIPTION: str = "Proxy between the dealer ordering portal and the Kintone record store"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
