# studio_bookings/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values are read from the process environment; nothing is loaded from disk.
    model_config = SettingsConfigDict(extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    DATABASE_URL_PROD: str = "postgresql://postgres:postgres@db:5432/studio_bookings"
    DATABASE_URL_LOCAL: str = "sqlite:///./studio_bookings.db"

    JWT_SECRET: str = "change-me"
    INTERNAL_API_KEY: str = "change-me"

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # --- Email (Resend) ---
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Ease <noreply@ease.no>"
    DEFAULT_ORGANIZATION_NAME: str = "Ease"

    # Public site, used to build claim links in waitlist emails
    SITE_URL: str = "https://ease.no"

    # --- Studio behaviour ---
    STUDIO_TIMEZONE: str = "Europe/Oslo"
    OFFER_TTL_HOURS: int = 24
    OFFER_EXPIRING_WINDOW_HOURS: int = 24

    SCHEDULER_ENABLED: bool = False
    LOG_LEVEL: str = "INFO"

    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )


# Create a single instance of the settings
settings = Settings()
