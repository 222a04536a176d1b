"""
Application settings for the procurement workflow
"""
from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.procurement.domain.models import HIGH_VALUE_THRESHOLD


class ProcurementSettings(BaseSettings):
    """Workflow and API settings - read from environment variables or .env."""

    # Requests above this amount need chairman approval
    high_value_threshold: Decimal = HIGH_VALUE_THRESHOLD

    # JWT Settings
    secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"

    cors_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


procurement_settings = ProcurementSettings()
