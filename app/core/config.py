"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:5173,https://miniapp.example.com). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # TELEGRAM BOT / STARS
    # ===========================================
    telegram_bot_token: str  # Required, no default
    # Stars (XTR) invoices require an empty provider token; only set for fiat providers.
    telegram_provider_token: str = ""
    stars_currency: str = "XTR"

    # ===========================================
    # MONETIZATION
    # ===========================================
    # Fallback when platform_settings row is missing. Locked into each order at creation.
    platform_fee_percent: int = 15
    # Ledger account that receives platform fees.
    platform_account_id: str = "platform"
    subscription_period_days: int = 30
    # Pending orders older than this are cancelled by the expiry sweep.
    order_pending_ttl_minutes: int = 60
    purchase_rate_limit: int = 5  # max pre-checkouts per window per user
    purchase_rate_window_seconds: int = 60

    # ===========================================
    # ADMIN API
    # ===========================================
    admin_api_key: str | None = None  # Optional, but recommended
    # Shared secret for provider callbacks (POST /orders/confirm, /orders/fail). Unset = closed.
    payment_webhook_secret: str | None = None

    # ===========================================
    # INTERNAL SERVICES
    # ===========================================
    http_client_timeout: float = 10.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("platform_fee_percent")
    @classmethod
    def validate_fee_percent(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("platform_fee_percent must be between 0 and 100")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
