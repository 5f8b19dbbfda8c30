from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Portal Analytics"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./portal.db"

    # View tracking settings
    analytics_dedup_window: Literal["calendar_day", "rolling_24h"] = "calendar_day"
    analytics_timezone: str = "UTC"
    trust_forwarded_headers: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("analytics_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Fail at startup on a zone name the tz database does not know."""
        if value.upper() == "UTC":
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
