"""
Application Configuration
"""

from pydantic_settings import BaseSettings
from decimal import Decimal
import os
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

DB_URL: str = os.getenv("DATABASE_URL", "postgresql://localhost:5432/ledgertax")


class Settings(BaseSettings):
    """Application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "LedgerTax"
    VERSION: str = "1.0.0"

    # Security
    SECRET_KEY: str = "lt-dev-secret-change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120 # 2 hours
    ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: str = DB_URL
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Tax engine
    DEFAULT_REGION: str = "uae"  # used when neither request nor organization carries a region
    FALLBACK_TAX_RATE: Decimal = Decimal("5")  # rate for a region missing from the regional table
    DEFAULT_CALCULATION_METHOD: str = "inclusive"
    RULE_CACHE_TTL_SECONDS: int = 0  # 0 = always read rules fresh

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
