from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "recurring-billing"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "billing"
    db_use_nullpool: bool = False
    db_pool_size: int = 10
    db_pool_overflow: int = 5
    database_url_override: Optional[str] = None  # e.g. sqlite+aiosqlite:///./dev.db

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def async_database_url(self) -> str:
        """Async driver URL, honouring an explicit override."""
        if self.database_url_override:
            return self.database_url_override
        return self.database_url.replace("postgresql://", "postgresql+asyncpg://")

    # OpenTelemetry
    otel_service_name: str = "recurring-billing"
    otel_service_version: str = "0.1.0"

    # Axiom (span export disabled when no token is set)
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Payment gateway - T-Bank acquiring API
    tbank_terminal_key: str = ""
    tbank_password: str = ""
    tbank_api_url: str = "https://securepay.tinkoff.ru/v2"
    tbank_timeout_seconds: float = 30.0
    notification_url: str = "http://localhost:8000/api/v1/webhooks/tbank"

    # Receipt defaults sent with every charge
    receipt_taxation: str = "osn"
    receipt_tax: str = "vat20"
    receipt_default_phone: str = "+79001234567"
    default_customer_email: str = "user@example.com"

    # Billing
    first_payment_amount: int = 390  # major currency units
    recurring_payment_amount: int = 390  # major currency units
    billing_interval_months: int = 1
    recurring_charge_description: str = "Automatic subscription charge"
    manual_charge_description: str = "Early subscription charge"
    payment_id_scan_limit: int = 50  # bound on the payment-id fallback lookup

    # Rate limiting (SlowAPI); the gateway webhook is exempt
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    rate_limit_default: str = "20/second;600/minute"

    # Notification worker
    notification_worker_concurrency: int = 4
    notification_queue_size: int = 1000

    @property
    def cors_allowed_origins(self) -> list[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return []


settings = Settings()
