"""
WooCommerce Accounting Proxy
Centralized Configuration Management

Pydantic settings with environment variable support. The settings object is
built once at process start and handed to the client and the aggregator
through FastAPI dependencies.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"

# Sections built through default_factory do not inherit the parent env_file.
ENV_FILE_CONFIG = {"env_file": ENV_FILE, "env_file_encoding": "utf-8", "extra": "ignore"}


class PaymentAmountMode(str, Enum):
    """How the amount of a payment row is derived from an order"""
    ORDER_TOTAL = "order_total"
    ADJUSTED_TOTAL = "adjusted_total"


class RefundScope(str, Enum):
    """Which orders contribute refunds to the monthly report"""
    SELECTED_ORDERS = "selected_orders"
    ANY_STATUS = "any_status"


class WooCommerceSettings(BaseSettings):
    """Upstream WooCommerce REST API Configuration"""

    model_config = SettingsConfigDict(env_prefix="WC_", **ENV_FILE_CONFIG)

    base_url: Optional[str] = Field(default=None, description="Store base URL, e.g. https://shop.example.com")
    consumer_key: Optional[SecretStr] = Field(default=None, description="REST API consumer key")
    consumer_secret: Optional[SecretStr] = Field(default=None, description="REST API consumer secret")
    api_path: str = Field(default="/wp-json/wc/v3", description="REST API path prefix")
    timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout for every upstream call")
    page_size: int = Field(default=100, ge=1, le=100, description="Orders requested per page")
    verify_ssl: bool = Field(default=True, description="Verify upstream TLS certificates")

    # Retry policy
    order_retry_attempts: int = Field(default=1, ge=1, description="Attempts per order listing call")
    refund_retry_attempts: int = Field(default=3, ge=1, description="Attempts per refund listing call")
    retry_backoff_seconds: float = Field(default=0.5, ge=0, description="Base delay between attempts")

    def missing_fields(self) -> List[str]:
        """Names of the connection settings that are not configured"""
        missing = []
        if not self.base_url:
            missing.append("WC_BASE_URL")
        if not self.consumer_key or not self.consumer_key.get_secret_value():
            missing.append("WC_CONSUMER_KEY")
        if not self.consumer_secret or not self.consumer_secret.get_secret_value():
            missing.append("WC_CONSUMER_SECRET")
        return missing

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields()

    @property
    def api_url(self) -> str:
        """Absolute REST API root"""
        return f"{(self.base_url or '').rstrip('/')}/{self.api_path.strip('/')}"


class AccountingSettings(BaseSettings):
    """Accounting Policy Configuration"""

    model_config = SettingsConfigDict(env_prefix="ACCOUNTING_", **ENV_FILE_CONFIG)

    payment_amount_mode: PaymentAmountMode = Field(
        default=PaymentAmountMode.ORDER_TOTAL,
        description="order_total or adjusted_total (total + shipping - discount)",
    )
    refund_scope: RefundScope = Field(
        default=RefundScope.SELECTED_ORDERS,
        description="selected_orders or any_status",
    )
    refunds_concurrency: int = Field(default=5, ge=1, le=10, description="Concurrent refund lookups")
    default_statuses: List[str] = Field(
        default=["completed"],
        description="Statuses used when a request does not name any",
    )


class SecuritySettings(BaseSettings):
    """Security and Authentication Configuration"""

    model_config = SettingsConfigDict(env_prefix="", **ENV_FILE_CONFIG)

    api_token: Optional[SecretStr] = Field(default=None, description="Static bearer token; unset means open")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    @property
    def token_defined(self) -> bool:
        return bool(self.api_token and self.api_token.get_secret_value())


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", **ENV_FILE_CONFIG)

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="woo-accounting", description="Application name")
    app_env: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=4, description="API workers")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    woocommerce: WooCommerceSettings = Field(default_factory=WooCommerceSettings)
    accounting: AccountingSettings = Field(default_factory=AccountingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
