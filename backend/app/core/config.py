from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Renta Agent Commissions"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql://renta_user:renta_pass@db:5432/renta_db"

    # Bootstrap
    AUTO_CREATE_TABLES: bool = True
    SEED_DEMO_DATA: bool = False

    # Money is stored as integers in the smallest unit of this currency
    CURRENCY: str = "RWF"

    # Commission state-change notifications (outbound webhook)
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT: int = 10

    # Identity provider: the gateway forwards the authenticated user id here
    IDENTITY_HEADER: str = "X-User-Id"

    # Frontend URL (CORS)
    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
