from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal
from functools import lru_cache


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Ledger Engine"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging settings
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    # Security settings
    enable_rate_limiting: bool = True
    rate_limit_per_minute: int = 30
    max_request_size: int = 1024 * 1024  # 1MB

    # CORS settings
    allowed_origins: List[str] = ["*"]  # In production, specify exact origins
    allowed_methods: List[str] = ["GET", "POST", "OPTIONS"]
    allowed_headers: List[str] = ["*"]

    # Ingestion settings
    malformed_row_policy: Literal["skip", "fail"] = "skip"

    # Ledger policy
    reject_duplicate_transaction_ids: bool = True
    enforce_dispute_client_match: bool = True
    reject_duplicate_disputes: bool = True

    # Output settings
    output_precision: int = 4

    # Timezone
    timezone: str = "UTC"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: Literal["json", "text"] = "text"
    rate_limit_per_minute: int = 100  # More lenient for development


class ProductionSettings(Settings):
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: List[str] = []  # Must be specified in production
    rate_limit_per_minute: int = 30


class TestingSettings(Settings):
    debug: bool = True
    log_level: str = "WARNING"  # Reduce noise in tests
    enable_rate_limiting: bool = False
    malformed_row_policy: Literal["skip", "fail"] = "fail"


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
