"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "TradeScope"
PRODUCT_TAGLINE = "Your trading journal, synced with your broker."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Journal trades, connect brokers, and review your performance."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./tradescope.db"

    # Logging
    log_level: str = "INFO"

    # Backend base URL used by the client facade
    api_url: str = "http://localhost:3001"

    # Frontend the OAuth callback redirects back to
    frontend_url: str = "http://localhost:4028"

    # Sessions
    jwt_secret: str = ""  # Set in .env for production
    session_cookie_name: str = "tradescope_session"
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Credential blobs are Fernet-encrypted when a key is configured
    credential_encryption_key: str = ""

    # Upstox OAuth
    upstox_client_id: str = ""
    upstox_client_secret: str = ""
    upstox_redirect_uri: str = "http://localhost:3001/api/upstox/callback?broker=upstox"
    upstox_api_url: str = "https://api.upstox.com/v2"
    upstox_token_ttl_seconds: int = 60 * 60 * 24

    # Default broker credentials, used to fill blank form fields
    zerodha_api_key: str = ""
    zerodha_api_secret: str = ""
    alpaca_api_key: str = ""
    alpaca_api_secret: str = ""

    # Periodic broker sync
    sync_interval_seconds: int = 900

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
