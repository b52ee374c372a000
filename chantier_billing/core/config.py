from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "Chantier Billing API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Payment scheduling and reconciliation for construction clients"

    # Persistence
    STORE_BACKEND: Literal["mongo", "memory"] = "mongo"
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "chantier_billing"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # JWT (actor identity only, tokens are issued elsewhere)
    SECRET_KEY: str = "change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Billing rules
    DEFAULT_DEPOSIT_RATE: float = 0.20
    DEFAULT_TERM_MONTHS: int = 12
    DEPOSIT_INVOICE_DUE_DAYS: int = 7
    REMINDER_LEAD_DAYS: int = 10
    OVERPAYMENT_POLICY: Literal["drop", "reject"] = "drop"
    PAYMENT_CONFLICT_RETRIES: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["standard", "json"] = "standard"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
