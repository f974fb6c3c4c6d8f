from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Payments Ledger"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: str = "WARNING"
    log_format: str = "text"  # json or text

    # Command channel settings
    queue_size: int = Field(default=16, ge=1)

    # Output settings
    decimal_places: int = Field(default=4, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEDGER_",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"


class ProductionSettings(Settings):
    log_level: str = "WARNING"
    log_format: str = "json"


class TestingSettings(Settings):
    log_level: str = "WARNING"
    queue_size: int = 1  # Exercise backpressure in tests


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
