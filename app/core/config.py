from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Reefline API"
    # Comma-separated origins for CORS (e.g. https://app.reefline.io). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Identity provider (HS256 JWT secret shared with the auth service)
    AUTH_JWT_SECRET: str
    AUTH_JWT_AUDIENCE: str = ""  # e.g. "authenticated"; empty disables the audience check

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_SUCCESS_URL: str = ""
    STRIPE_CANCEL_URL: str = ""
    STRIPE_PLATFORM_CHARGE_CURRENCY: str = "usd"
    STRIPE_FORCE_CURRENCY: str = ""  # honored only when ENV=development
    FX_RATE_JOD_TO_USD: str = ""  # kept as text so it parses straight into Decimal

    HOLD_WINDOW_MINUTES: int = 15
    ENFORCE_UNIQUE_PHONE: bool = False

    # Notifications
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = ""
    NOTIFY_REPLY_TO: str = ""
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_FROM: str = ""  # e.g. whatsapp:+14155238886


settings = Settings()
