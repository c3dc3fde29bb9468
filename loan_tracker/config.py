"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoanTrackerConfig(BaseSettings):
    """Loan tracker configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LOAN_TRACKER_",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Database configuration (absent URI means file-only mode)
    mongodb_uri: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MONGODB_URI", "LOAN_TRACKER_MONGODB_URI"),
    )
    mongodb_db: str = Field(
        default="loanapp",
        validation_alias=AliasChoices("MONGODB_DB", "LOAN_TRACKER_MONGODB_DB"),
    )
    mongodb_collection: str = "borrowers"
    mongodb_timeout_ms: int = 5000

    # File storage configuration
    data_file: Path = Path("/tmp/data.json")

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    @property
    def database_configured(self) -> bool:
        """Whether a database connection string is present"""
        return bool(self.mongodb_uri)


# Global configuration instance
config = LoanTrackerConfig()


def get_config() -> LoanTrackerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LoanTrackerConfig:
    """Reload configuration from environment"""
    global config
    config = LoanTrackerConfig()
    return config
