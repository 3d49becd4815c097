from pydantic_settings import BaseSettings
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    # Lifetime (in minutes) of both the service JWT and the dashboard session
    # row backing it. Adjust via ACCESS_TOKEN_EXPIRE_MINUTES env var.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 300
    DEBUG: bool = False

    @property
    def secret_key(self) -> str:
        return self.JWT_SECRET or self.SECRET_KEY

    # Seller-operations REST API that owns accounts, orders, items and the
    # Mercado Livre tokens. This service only consumes it.
    SELLER_API_BASE_URL: str = "http://localhost:3001/api"
    SELLER_API_TIMEOUT_SECONDS: float = 20.0

    # Dashboard aggregation tuning.
    #
    # DASHBOARD_FETCH_TIMEOUT_SECONDS bounds every per-account sub-fetch; a
    # fetch that does not settle in time counts as failed (zero/empty).
    DASHBOARD_FETCH_TIMEOUT_SECONDS: float = 10.0
    DASHBOARD_MAX_CONCURRENT_ACCOUNTS: int = 5
    DASHBOARD_ORDERS_LIMIT: int = 50
    DASHBOARD_PRODUCTS_LIMIT: int = 20
    DASHBOARD_PENDING_LIMIT: int = 50

    # DATABASE_URL must be provided via environment (Postgres in production;
    # SQLite is accepted for local runs and the test-suite).
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"
    FRONTEND_URL: str = "http://localhost:5173"

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def seller_api_base_url(self) -> str:
        return self.SELLER_API_BASE_URL.rstrip("/")


_db_url = os.getenv("DATABASE_URL")
if not _db_url:
    raise RuntimeError("DATABASE_URL is required (Postgres, or SQLite for local runs).")

settings = Settings()
