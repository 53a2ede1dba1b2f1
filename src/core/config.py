"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-core", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_jwt_secret: str = Field(..., description="Supabase JWT secret for HS256 token verification")

    # Payment gateway (Stripe)
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    payment_currency: str = Field(default="inr", description="ISO currency code for gateway orders")
    payment_signature_secret: str = Field(
        default="",
        description="Shared secret for the client-side payment confirmation signature",
    )

    # Shipping carrier (Shiprocket)
    shiprocket_base_url: str = Field(
        default="https://apiv2.shiprocket.in/v1/external",
        description="Shiprocket external API base URL",
    )
    shiprocket_email: str = Field(default="", description="Shiprocket API user email")
    shiprocket_password: str = Field(default="", description="Shiprocket API user password")
    shiprocket_webhook_secret: str = Field(default="", description="Optional HMAC secret for carrier webhooks")
    shiprocket_pickup_location: str = Field(default="Primary", description="Registered pickup location name")
    shiprocket_token_ttl_hours: int = Field(default=24, description="Carrier bearer token lifetime")

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Storefront <orders@storefront.example>",
        description="From address for transactional emails",
    )
    admin_email: str = Field(default="", description="Inbox that receives new return notifications")

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Frontend application URL for email links",
    )

    # Pricing
    free_shipping_threshold: Decimal = Field(default=Decimal("999"), description="Subtotal at which shipping is free")
    shipping_fee: Decimal = Field(default=Decimal("99"), description="Flat shipping fee below the threshold")
    tax_rate: Decimal = Field(default=Decimal("0.18"), description="Tax rate applied after discount")

    # Order lifecycle
    return_window_days: int = Field(default=7, description="Days after delivery during which returns are accepted")
    pending_checkout_ttl_minutes: int = Field(default=30, description="Lifetime of a staged checkout")
    external_timeout_seconds: float = Field(default=15.0, description="Timeout for gateway and carrier calls")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")

    @property
    def shiprocket_configured(self) -> bool:
        """Check whether carrier credentials are present."""
        return bool(self.shiprocket_email and self.shiprocket_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
