"""
Databridge Configuration Module

Loads environment variables for the payment-to-provisioning bridge.
Paystack keys resolve live-first, then plain, then test variants.
"""
from pydantic_settings import BaseSettings
from typing import List, Literal, Optional


DEFAULT_ALLOWED_ORIGINS = [
    "https://exclusave-backend.vercel.app",
    "https://exclusave-shop.vercel.app",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:3000",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Secrets never have working defaults; missing keys surface as 500s
      on the endpoints that need them
    - Rate limit window is in milliseconds to match the deployed env vars
    """

    # Paystack (payment processor)
    paystack_live_secret_key: Optional[str] = None
    paystack_secret_key: Optional[str] = None
    paystack_test_secret_key: Optional[str] = None
    paystack_live_public_key: Optional[str] = None
    paystack_public_key: Optional[str] = None
    paystack_test_public_key: Optional[str] = None
    paystack_base_url: str = "https://api.paystack.co"
    payment_currency: str = "GHS"
    default_channels: List[str] = ["mobile_money", "ussd"]

    # InstantData (provisioning vendor)
    instantdata_api_key: Optional[str] = None
    instantdata_api_url: str = "https://instantdatagh.com/api.php/orders"
    vendor_timeout_seconds: float = 15.0
    vendor_check_timeout_seconds: float = 10.0
    supported_networks: List[str] = ["MTN", "TELECEL", "AIRTELTIGO"]

    # SendGrid (email)
    sendgrid_api_key: Optional[str] = None
    sendgrid_from_email: Optional[str] = None
    sendgrid_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    operator_email: Optional[str] = None
    shop_name: str = "Exclusave Shop"

    # Document store
    database_url: str = "sqlite+aiosqlite:///./databridge.db"

    # Origin / rate guard
    cors_origin: str = ""
    rate_limit_window_ms: int = 60_000
    rate_limit_max: int = 100
    rate_limit_burst: int = 20
    bucket_sweep_interval_seconds: int = 300

    # Outbound HTTP
    http_timeout_seconds: float = 20.0

    # Server
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def paystack_secret(self) -> Optional[str]:
        return self.paystack_live_secret_key or self.paystack_secret_key or self.paystack_test_secret_key

    @property
    def paystack_public(self) -> Optional[str]:
        return self.paystack_live_public_key or self.paystack_public_key or self.paystack_test_public_key

    @property
    def operator_recipient(self) -> Optional[str]:
        return self.operator_email or self.sendgrid_from_email

    @property
    def allowed_origins(self) -> List[str]:
        """Built-in origins plus any comma-separated CORS_ORIGIN entries."""
        extra = [o.strip() for o in self.cors_origin.split(",") if o.strip()]
        return DEFAULT_ALLOWED_ORIGINS + [o for o in extra if o not in DEFAULT_ALLOWED_ORIGINS]


# Global settings instance
settings = Settings()
