from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Shared secret for internal routes (cron, workers)
    SECRET: Optional[str] = None

    # Billing is disabled when no Stripe key is configured
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # Explorers
    APP_DOMAIN: str = "tryethernal.com"
    DEFAULT_PLAN_SLUG: str = "self-hosted"
    DEFAULT_EXPLORER_TRIAL_DAYS: int = 7
    CRYPTO_DAYS_UNTIL_DUE: int = 7
    RPC_TIMEOUT_SECONDS: float = 10

    # Sync processes
    PM2_HOST: Optional[str] = None
    PM2_SECRET: Optional[str] = None
    REDIS_URL: str = "redis://localhost:6379/0"

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    def billing_enabled(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

settings = Settings()
