"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./jobengine.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Invoices: days after approval before an unpaid invoice is flagged overdue
    INVOICE_PAYMENT_TERMS_DAYS: int = 30

    # SLA targets in minutes, keyed by ticket priority value
    SLA_RESPONSE_MINUTES: dict[str, int] = {
        "low": 2880,
        "medium": 720,
        "high": 60,
        "critical": 30,
    }
    SLA_RESOLUTION_MINUTES: dict[str, int] = {
        "low": 4320,
        "medium": 1440,
        "high": 480,
        "critical": 120,
    }
    # Fallback for priorities without an entry (urgent included)
    SLA_DEFAULT_RESPONSE_MINUTES: int = 1440
    SLA_DEFAULT_RESOLUTION_MINUTES: int = 2880

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Secrets to try when verifying tokens, current first."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets


settings = Settings()
