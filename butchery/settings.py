# settings.py
import os
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Butchery Storefront API"
    API_V1_PREFIX: str = "/api"

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./butchery.db"  # default local SQLite
    )

    # Pricing
    VAT_RATE: float = 0.05
    CURRENCY: str = "AED"

    # Storefront client
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000/api")
    API_TIMEOUT_SECONDS: float = 20.0
    DASHBOARD_REFRESH_SECONDS: float = 5.0
    SAVED_BASKETS_PATH: str = os.getenv("SAVED_BASKETS_PATH", "")

    # CORS
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    class Config:
        env_file = ".env"
        case_sensitive = True


# ✅ Instantiate settings globally
settings = Settings()
