"""
Ledgerline - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Ledgerline"
    app_env: str = "development"
    debug: bool = True
    api_version: str = "v1"
    default_language: str = "en"

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str  # Required - must be set in .env
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_lock_timeout_ms: int = 5000

    # ===========================================
    # JWT AUTHENTICATION
    # Tokens are issued by the external auth service;
    # this service only verifies them.
    # ===========================================
    jwt_secret_key: str  # Required - must be set in .env
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    jwt_issuer: Optional[str] = None

    # ===========================================
    # TREASURY ACCOUNT-CODE MAPPINGS
    # Each value is a codes.id (UUID). When empty, the
    # settings table row with the same code is consulted.
    # ===========================================
    code_treasury_cash_receipt: Optional[str] = None
    code_treasury_card_receipt: Optional[str] = None
    code_treasury_transfer_receipt: Optional[str] = None
    code_treasury_check_receipt: Optional[str] = None
    code_treasury_counterparty_receipt: Optional[str] = None
    code_treasury_cash_payment: Optional[str] = None
    code_treasury_transfer_payment: Optional[str] = None
    code_treasury_check_payment: Optional[str] = None
    code_treasury_counterparty_payment: Optional[str] = None

    # ===========================================
    # HANDLER DETAIL CODE RANGES (4-digit)
    # ===========================================
    cashbox_start_code: Optional[int] = None
    bank_detail_start_code: Optional[int] = None
    card_reader_detail_start_code: Optional[int] = None

    # ===========================================
    # CORS
    # ===========================================
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


settings = get_settings()
