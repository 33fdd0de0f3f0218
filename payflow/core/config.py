import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Auth (HS256 bearer tokens, X-User-Id fallback outside production)
    AUTH_JWT_SECRET: Optional[str] = None

    # Paystack
    PAYSTACK_ENABLED: bool = False
    PAYSTACK_PUBLIC_KEY: Optional[str] = None
    PAYSTACK_SECRET_KEY: Optional[str] = None
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"

    # Flutterwave
    FLUTTERWAVE_ENABLED: bool = False
    FLUTTERWAVE_PUBLIC_KEY: Optional[str] = None
    FLUTTERWAVE_SECRET_KEY: Optional[str] = None
    FLUTTERWAVE_BASE_URL: str = "https://api.flutterwave.com/v3"

    # Stripe
    STRIPE_ENABLED: bool = False
    STRIPE_PUBLIC_KEY: Optional[str] = None
    STRIPE_SECRET_KEY: Optional[str] = None

    # Checkout
    PAYMENT_HTTP_TIMEOUT_SECONDS: float = 15.0
    PAYMENT_INTENT_TTL_MINUTES: int = 120
    CHECKOUT_PRODUCT_NAME: str = "Pro Subscription"
    CHECKOUT_PRODUCT_DESCRIPTION: str = "Upgrade to the Pro plan"
    SUPPORT_EMAIL: str = "support@example.com"

    # App URLs
    BACKEND_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("payflow")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "AUTH_JWT_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]

    # At least one provider must be able to take payments
    provider_keys = ["PAYSTACK_SECRET_KEY", "FLUTTERWAVE_SECRET_KEY", "STRIPE_SECRET_KEY"]
    if not any(getattr(cfg, key, None) for key in provider_keys):
        missing.append(" | ".join(provider_keys))

    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
