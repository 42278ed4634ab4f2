"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "UG Gaming Storefront Payments API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'storefront.db'}"

    # --- Auth platform (bearer tokens) ---
    AUTH_JWT_SECRET: str = "storefront-jwt-secret-change-in-production"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # --- Payment gateway (API Nepal) ---
    GATEWAY_MODE: str = "test"  # test | live
    GATEWAY_LIVE_URL: str = "https://apinepal.com/payment/initiate"
    GATEWAY_TEST_URL: str = "https://apinepal.com/test/payment/initiate"
    GATEWAY_PUBLIC_KEY: str = ""
    GATEWAY_SECRET_KEY: str = ""
    GATEWAY_TIMEOUT_SECONDS: float = 15.0
    GATEWAY_CURRENCY: str = "NPR"

    # --- Checkout branding & callbacks ---
    SITE_NAME: str = "UG Gaming"
    SITE_LOGO: str = "https://ug-gaming-topup.lovable.app/logo.jpg"
    CHECKOUT_THEME: str = "dark"
    CUSTOMER_MOBILE: str = "9800000000"
    DEFAULT_SITE_URL: str = "https://ug-gaming-topup.lovable.app"
    CLIENT_ROUTE_PREFIX: str = ""   # "/#" for hash-routed frontends
    PUBLIC_API_URL: str = "http://localhost:8000"

    # --- Top-up rules ---
    MIN_TOPUP_AMOUNT: int = 1
    MAX_TOPUP_AMOUNT: int = 100000
    CREDITS_PER_UNIT: int = 1
    IDENTIFIER_PREFIX: str = "UG"
    IDENTIFIER_MAX_LENGTH: int = 20

    # --- IPN ---
    IPN_STRICT_PARSING: bool = False

    # --- Read surface ---
    HISTORY_PAGE_SIZE: int = 20
    HISTORY_MAX_PAGE_SIZE: int = 100
    ADMIN_PAYMENTS_LIMIT: int = 100

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]
    INITIATE_RATE_LIMIT: int = 5
    INITIATE_RATE_WINDOW_SECONDS: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def gateway_endpoint(self) -> str:
        return self.GATEWAY_LIVE_URL if self.GATEWAY_MODE == "live" else self.GATEWAY_TEST_URL

    @property
    def ipn_url(self) -> str:
        return f"{self.PUBLIC_API_URL.rstrip('/')}/api/payment/ipn"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
