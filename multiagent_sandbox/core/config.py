"""
Configuration settings for the Multi-Agent Sandbox
"""
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra environment variables
    )

    # Application settings
    app_name: str = "Multi-Agent Sandbox"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Decision capability (chat model) settings
    openai_api_key: Optional[str] = None
    primary_model: str = "gpt-4o-mini"
    secondary_model: str = "gpt-4"
    llm_temperature: float = 0.0
    decision_timeout: float = 30.0

    # Lookup settings
    weatherapi_com_key: Optional[str] = None
    weatherapi_base_url: str = "https://api.weatherapi.com/v1"
    lookup_timeout: float = 10.0
    population_failure_rate: float = Field(default=0.5, ge=0.0, le=1.0)

    # Retry settings for unstable lookups
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=1.0, ge=0.0)
    retry_backoff_multiplier: float = 2.0

    # Graph settings
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_cycles: int = Field(default=100, ge=1)

    @field_validator("retry_backoff_multiplier")
    @classmethod
    def _multiplier_must_grow(cls, value: float) -> float:
        if value <= 1:
            raise ValueError("retry_backoff_multiplier must be greater than 1")
        return value

    @property
    def has_llm_credentials(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, loaded once from the environment"""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and REST entry points"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
