from pydantic_settings import BaseSettings, SettingsConfigDict



class Settings(BaseSettings):
    APP_ENV: str = "dev"
    PORT: int = 8085
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str
    DB_AUTO_CREATE: bool = True
    RAZORPAY_KEY_ID: str | None = None
    RAZORPAY_KEY_SECRET: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    REFUND_PERIOD_DAYS: int = 14
    AWS_ACCESS_KEY: str | None = None
    AWS_SECRET_KEY: str | None = None
    AWS_REGION: str | None = None
    EMAIL_FROM: str | None = None
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


Config = Settings()
