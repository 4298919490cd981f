# classdy/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DB_NAME: str = "classdy.db"
    DEFAULT_GRACE_PERIOD: int = 5  # minutes
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="CLASSDY_", env_file=".env", extra="ignore")


# Module-level singleton
settings = Settings()
