from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from scorecard.constants import CATALOG_KEY, DEFAULT_STEP_TOLERANCE, STORE_KEY


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///scorecard.db", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="SCORECARD_LOG_LEVEL")
    timezone: str = Field("local", alias="SCORECARD_TIMEZONE")

    step_tolerance: float = Field(DEFAULT_STEP_TOLERANCE, alias="SCORECARD_STEP_TOLERANCE", gt=0)
    catalog_key: str = Field(CATALOG_KEY, alias="SCORECARD_CATALOG_KEY")
    store_key: str = Field(STORE_KEY, alias="SCORECARD_STORE_KEY")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
