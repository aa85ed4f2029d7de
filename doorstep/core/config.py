from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "Doorstep Ledger API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Subscription ledger and delivery reconciliation for doorstep deliveries"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "doorstep"
    # Multi-document transactions need a replica set; disable for standalone mongod
    MONGODB_TRANSACTIONS: bool = True

    # Calendar
    TIMEZONE: str = "Asia/Kolkata"
    CUTOFF_HOUR: int = 17

    # Pricing
    PRICING_CACHE_TTL_SECONDS: int = 300
    CONTAINER_SETS_PER_DEPOSIT: int = 2
    DEPOSIT_INTERVAL_DELIVERIES: int = 90

    # Container penalties (paise per container)
    PENALTY_THRESHOLD_DAYS: int = 3
    LARGE_CONTAINER_PENALTY: int = 3500
    SMALL_CONTAINER_PENALTY: int = 2500

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )


settings = Settings()
