"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./riskwatch.db"

    # Application
    APP_ENV: str = "development"
    API_V1_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Frontend (base for links in emails)
    FRONTEND_URL: str = "http://localhost:3000"

    # Email
    MAIL_FROM: str = "Riskwatch <notifications@riskwatch.app>"
    RESEND_API_KEY: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_CONSOLE_MODE: bool = False

    # Scheduler
    SCHEDULER_ENABLED: bool = False

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]
        return [self.FRONTEND_URL]

    @property
    def smtp_config(self) -> Optional[dict]:
        if not self.SMTP_HOST:
            return None
        return {
            "host": self.SMTP_HOST,
            "port": self.SMTP_PORT,
            "username": self.SMTP_USERNAME or "",
            "password": self.SMTP_PASSWORD or "",
            "from_email": self.MAIL_FROM,
            "use_tls": self.SMTP_USE_TLS,
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()
