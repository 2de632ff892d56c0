"""Helpdesk settings, read from the process environment and an optional .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    VERSION: str = "0.1.0"

    # Storage. SQLite and PostgreSQL URLs are both accepted.
    DATABASE_URL: str
    SQLITE_BUSY_TIMEOUT_SECONDS: int = 30

    # Session cookie signing. JWT_SECRET_PREVIOUS stays valid for decoding
    # while a rotation is in progress.
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""
    JWT_EXPIRES_HOURS: int = 8

    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Per-minute request budgets; 0 disables the API-wide default
    RATE_LIMIT_API: int = 120
    RATE_LIMIT_TICKET_CREATE: int = 30

    TICKET_SEQUENCE_NAME: str = "tickets"
    NUDGE_COOLDOWN_HOURS: int = 24

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Signing secret first, then the pre-rotation one when configured."""
        return [s for s in (self.JWT_SECRET, self.JWT_SECRET_PREVIOUS) if s]


settings = Settings()
