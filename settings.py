# settings.py
"""Deployment settings, read from the environment or a local .env file."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === AI prediction ===
    prediction_backend: Literal["gemini", "model", "none"] = "gemini"
    ai_prediction_enabled: bool = True
    ai_prediction_timeout: float = 30.0  # seconds
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ml_model_path: str = "models/field_predictor.pkl"

    # === Confidence policy ===
    fallback_confidence_percent: float = 50.0
    default_ai_confidence_percent: float = 60.0

    # === Static tables (defaults are compiled in) ===
    emission_factors_csv: Optional[str] = None
    thresholds_csv: Optional[str] = None

    log_level: str = "INFO"

    @field_validator("fallback_confidence_percent", "default_ai_confidence_percent")
    @classmethod
    def _percent_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError("confidence must be between 0 and 100")
        return v

    @field_validator("ai_prediction_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("ai_prediction_timeout must be positive")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
